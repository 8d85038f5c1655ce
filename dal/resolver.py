'''
Resolve a decoded query against the collections of the root entity's relationship tree.

Queries whose terms are all on the root entity run directly against the root collection.
Otherwise, each term is run against the collection of the node it resolved to.
Each matched document then walks its owner chain up the tree; the documents whose chain ends at a document of the root entity
contribute that root document's id to the term's bucket. The root documents returned are those in every term's bucket.
The term queries and owner walks run concurrently on a thread pool; the buckets are only intersected once all of them have completed.
'''

import logging
import concurrent.futures

from dal.utils import apply_exclusion_projection
from services.errors import NotFoundError

logger = logging.getLogger(__name__)

HTTP_OK = 200
HTTP_NO_CONTENT = 204

DEFAULT_WORKERS = 8


def get_root_owner(node, doc):
    """
    Walk the owner chain of doc up the tree starting at node.
    The walk stops when there is no owner, no parent node or the owner cannot be found.
    :return: The (node, document) pair at the end of the chain
    """
    while node.parent is not None and doc.get("owner") is not None:
        owner = node.parent.entity.collection.find_one({"_id": doc["owner"]})
        if owner is None:
            break
        node, doc = node.parent, owner
    return node, doc


class Resolver(object):
    """
    :param root - the ModelNode of the entity being queried
    :param max_workers - the size of the thread pool used for term queries and owner walks
    """
    def __init__(self, root, max_workers=DEFAULT_WORKERS):
        self.root = root
        self.entity = root.entity
        self.max_workers = max_workers

    def get_projection(self, select_fields):
        """
        The database projection for the root documents.
        Selected fields are included minus any excluded by the root's own projection; otherwise, the root's exclusions apply.
        """
        excluded = { k for k, v in self.root.projection.items() if not v }
        if select_fields:
            return { f: 1 for f in select_fields if f not in excluded }
        return { k: 0 for k in excluded } or None

    def _walk_to_root(self, node, doc):
        end_node, end_doc = get_root_owner(node, doc)
        if end_node.entity is self.entity:
            return end_doc["_id"]
        return None

    def resolve_ids(self, descriptor):
        """
        Run each term against its own node's collection and map the matches onto root document ids.
        :return: The set of root ids that satisfy every term
        """
        with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            # Phase 1; one query per term (per alternative for union terms)
            queries = []
            for termidx, term in enumerate(descriptor.terms):
                for node, clause in (term.alternatives or [(term.node, term.clause)]):
                    queries.append((termidx, node, executor.submit(node.entity.find, clause)))
            concurrent.futures.wait([f for _, _, f in queries])

            # Phase 2; an owner walk per matched document
            walks = []
            for termidx, node, future in queries:
                for doc in future.result():
                    if node is self.root:
                        walks.append((termidx, None, doc["_id"]))
                    else:
                        walks.append((termidx, executor.submit(self._walk_to_root, node, doc), None))
            concurrent.futures.wait([f for _, f, _ in walks if f is not None])

        buckets = [set() for _ in descriptor.terms]
        for termidx, future, rootid in walks:
            if future is not None:
                rootid = future.result()
            if rootid is not None:
                buckets[termidx].add(rootid)
        logger.debug("Resolved %s terms for %s into buckets of sizes %s", len(buckets), self.entity.name, [len(b) for b in buckets])
        if not buckets:
            return set()
        return set.intersection(*buckets)

    def _finish(self, docs):
        self.root.populate(docs)
        return apply_exclusion_projection(docs, self.root.get_projection())

    def get_docs(self, descriptor, obj_id=None, sort=None):
        """
        Get the root documents matching the decoded query.
        :param obj_id - if specified, get just this document by id
        :return: (HTTP status, documents); a single document when obj_id is specified
        :raises NotFoundError if there is no document with the specified id
        """
        projection = self.get_projection(descriptor.select_fields())
        if obj_id is not None:
            doc = self.entity.find_by_id(obj_id, projection=projection)
            if doc is None:
                raise NotFoundError(self.entity.name)
            return HTTP_OK, self._finish(doc)

        if descriptor.is_root_only():
            docs = self.entity.find(descriptor.filter, projection=projection, sort=sort)
            return HTTP_OK, self._finish(docs)

        ids = self.resolve_ids(descriptor)
        if not ids:
            return HTTP_NO_CONTENT, []
        docs = self.entity.find({"_id": {"$in": list(ids)}}, projection=projection, sort=sort)
        return HTTP_OK, self._finish(docs)

    def count(self, descriptor):
        """
        The number of root documents matching the decoded query.
        """
        if descriptor.is_root_only():
            return self.entity.count(descriptor.filter)
        return len(self.resolve_ids(descriptor))


def resolve(descriptor, obj_id=None, max_workers=DEFAULT_WORKERS, sort=None):
    return Resolver(descriptor.root, max_workers=max_workers).get_docs(descriptor, obj_id=obj_id, sort=sort)


def count(descriptor, max_workers=DEFAULT_WORKERS):
    return Resolver(descriptor.root, max_workers=max_workers).count(descriptor)
