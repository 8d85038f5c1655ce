'''
The entities of the application and their relationship trees.

Leaf entities get a tree with just their own root node.
Composite entities mount copies of the trees of the entities they reference; so these are built in dependency order.
'''

import logging

from dal.entity import Entity
from dal.models import (
    Address, ContactDetails, Person, Role, User,
    VotingSystem, VotingDistrict, Party, Candidate, Election,
    Question, Answer, Survey,
    Canvass, CanvassAssignment, CanvassResult,
    Notice,
)

logger = logging.getLogger(__name__)

# User fields that are never returned to clients or used in queries
USER_PRIVATE_FIELDS = ["password_hash", "oauth_id", "oauth_token"]

addresses = Entity("Address", "addresses", Address)
contact_details = Entity("ContactDetails", "contactdetails", ContactDetails)
roles = Entity("Role", "roles", Role, unique=["level"])
voting_systems = Entity("VotingSystem", "votingsystems", VotingSystem, unique=["abbreviation"])
voting_districts = Entity("VotingDistrict", "votingdistricts", VotingDistrict)
questions = Entity("Question", "questions", Question)
notices = Entity("Notice", "notices", Notice)

people = Entity("Person", "people", Person)
people.tree.add_child_branch(contact_details.tree, "contact_details")
people.tree.add_child_branch(addresses.tree, "address")

users = Entity("User", "users", User,
               projection={ f: 0 for f in USER_PRIVATE_FIELDS },
               ex_paths=USER_PRIVATE_FIELDS,
               unique=["username"])
users.tree.add_child_branch(roles.tree, "role")
users.tree.add_child_branch(people.tree, "person")

parties = Entity("Party", "parties", Party)
parties.tree.add_child_branch(addresses.tree, "address")
parties.tree.add_child_branch(contact_details.tree, "contact_details")

candidates = Entity("Candidate", "candidates", Candidate)
candidates.tree.add_child_branch(people.tree, "person")
candidates.tree.add_child_branch(parties.tree, "party")

elections = Entity("Election", "elections", Election)
elections.tree.add_child_branch(voting_systems.tree, "system")
elections.tree.add_child_branch(candidates.tree, "candidates")

answers = Entity("Answer", "answers", Answer)
answers.tree.add_child_branch(questions.tree, "question")

surveys = Entity("Survey", "surveys", Survey)
surveys.tree.add_child_branch(questions.tree, "questions")

canvass_results = Entity("CanvassResult", "canvassresults", CanvassResult)
canvass_results.tree.add_child_branch(answers.tree, "answers")
canvass_results.tree.add_child_branch(users.tree, "canvasser")
canvass_results.tree.add_child_branch(people.tree, "voter")
canvass_results.tree.add_child_branch(addresses.tree, "address")

canvasses = Entity("Canvass", "canvasses", Canvass)
canvasses.tree.add_child_branch(elections.tree, "election")
canvasses.tree.add_child_branch(surveys.tree, "survey")
canvasses.tree.add_child_branch(addresses.tree, "addresses")
canvasses.tree.add_child_branch(users.tree, "canvassers")
canvasses.tree.add_child_branch(canvass_results.tree, "results")

canvass_assignments = Entity("CanvassAssignment", "canvassassignments", CanvassAssignment)
canvass_assignments.tree.add_child_branch(canvasses.tree, "canvass")
canvass_assignments.tree.add_child_branch(users.tree, "canvasser")
canvass_assignments.tree.add_child_branch(addresses.tree, "addresses")

ALL_ENTITIES = [
    addresses, contact_details, roles, voting_systems, voting_districts, questions, notices,
    people, users, parties, candidates, elections, answers, surveys,
    canvass_results, canvasses, canvass_assignments,
]


def ensure_indexes():
    for entity in ALL_ENTITIES:
        entity.ensure_indexes()
