'''
The relationship tree between document types.

Each entity has a tree of ModelNode's rooted at its own node.
The children of a node are the entities reached through a reference field of the node's entity; the `path` of a child is that field name.
For example, a person has its address at the path `address` and its contact details at `contact_details`.
Trees are composed at startup by mounting copies of already built trees under a new parent; they are only read after that.
'''

import copy
import logging
import collections

from dal.models.common import FieldKind

logger = logging.getLogger(__name__)

ID_VERSION_FIELDS = ("_id", "__v")
TIMESTAMP_FIELDS = ("created_at", "updated_at")


class ModelNode(object):
    """
    One entity type's position in a relationship tree.
    :param entity - the dal.entity.Entity for this node
    :param path - the field name under the parent through which this node is reached; None for a root
    :param populate_sub_docs - if True, the referenced documents at this node are substituted in when populating the parent
    :param projection - field projection for this node's documents; only exclusions are supported, for example, {"password_hash": 0}
    """
    def __init__(self, entity, path=None, populate_sub_docs=True, projection=None):
        if entity is None:
            raise ValueError("An entity is required for a model node")
        self.entity = entity
        self.path = path
        self.parent = None
        self.children = []
        self.populate_sub_docs = populate_sub_docs
        self.projection = projection if projection is not None else {}

    def __repr__(self):
        return "ModelNode(%s, path=%s)" % (self.entity.name, self.get_full_path() or "<root>")

    @staticmethod
    def _check_args(what, path):
        if what is None:
            raise ValueError("Missing model for model node")
        if not path:
            raise ValueError("Missing path for model node")

    def add_child(self, entity, path, populate_sub_docs=True, projection=None):
        """
        Append a new leaf node for entity at the end of this node's children.
        """
        ModelNode._check_args(entity, path)
        child = ModelNode(entity, path=path, populate_sub_docs=populate_sub_docs, projection=projection)
        child.parent = self
        self.children.append(child)
        return child

    def add_child_branch(self, node, path):
        """
        Mount a copy of the whole subtree of node as the last child of this node.
        The copy gets fresh nodes so the same tree can be mounted under several parents.
        """
        ModelNode._check_args(node, path)
        branch = node._clone()
        branch.path = path
        branch.parent = self
        self.children.append(branch)
        return branch

    def add_sibling(self, entity, path, populate_sub_docs=True, projection=None):
        """
        Insert a new node immediately after this node in its parent's children.
        """
        ModelNode._check_args(entity, path)
        if self.parent is None:
            raise ValueError("Cannot add a sibling to the root node of %s" % self.entity.name)
        sibling = ModelNode(entity, path=path, populate_sub_docs=populate_sub_docs, projection=projection)
        sibling.parent = self.parent
        siblings = self.parent.children
        siblings.insert(siblings.index(self) + 1, sibling)
        return sibling

    def _clone(self):
        ret = ModelNode(self.entity, path=self.path, populate_sub_docs=self.populate_sub_docs, projection=copy.deepcopy(self.projection))
        for child in self.children:
            cc = child._clone()
            cc.parent = ret
            ret.children.append(cc)
        return ret

    def find_child(self, path):
        for child in self.children:
            if child.path == path:
                return child
        return None

    def get_root(self):
        node = self
        while not node.is_root():
            node = node.parent
        return node

    def is_root(self):
        return self.parent is None

    def get_full_path(self):
        """
        The dotted path from the root to this node; an empty string for the root.
        """
        parts = []
        node = self
        while node.parent is not None:
            parts.append(node.path)
            node = node.parent
        return ".".join(reversed(parts))

    def preorder(self, callback=None):
        """
        Visit this node and then its children, in order, recursively.
        :return: The visited nodes in pre-order
        """
        visited = []
        stack = [self]
        while stack:
            node = stack.pop()
            visited.append(node)
            if callback:
                callback(node)
            stack.extend(reversed(node.children))
        return visited

    def levelorder(self, callback=None):
        visited = []
        queue = collections.deque([self])
        while queue:
            node = queue.popleft()
            visited.append(node)
            if callback:
                callback(node)
            queue.extend(node.children)
        return visited

    def for_each(self, callback):
        """
        Call callback for every node in the tree, starting from the root.
        """
        return self.get_root().preorder(callback)

    def get_tree(self):
        """
        All the nodes of the tree in pre-order; always starts from the root regardless of which node this is called on.
        """
        return self.get_root().preorder()

    def get_field_kinds(self, ex_version_id=False, ex_timestamp=False, ex_paths=None, ex_types=None, predicate=None):
        """
        The field name -> FieldKind table of this node's entity with the excluded fields removed.
        """
        return { name: kind for name, kind in self.entity.field_kinds.items()
                 if not is_excluded(name, kind, ex_version_id=ex_version_id, ex_timestamp=ex_timestamp, ex_paths=ex_paths, ex_types=ex_types, predicate=predicate) }

    def get_model_path_types(self, **options):
        """
        The field name -> FieldKind mapping for every node in the tree below and including this node.
        The mapping of a child node replaces the reference field at the child's path.
        Options are as for get_field_kinds.
        """
        ret = dict(self.get_field_kinds(**options))
        for child in self.children:
            ret[child.path] = child.get_model_path_types(**options)
        return ret

    def get_projection(self):
        """
        The projection of the whole tree merged into one dict; keys are prefixed with the dotted path from the root.
        """
        ret = {}
        def merge(node):
            prefix = node.get_full_path()
            for k, v in node.projection.items():
                ret[prefix + "." + k if prefix else k] = v
        self.for_each(merge)
        return ret

    def populate(self, docs):
        """
        Replace the references in docs with the documents they refer to; recursively, following this node's children.
        :param docs - a document or a list of documents of this node's entity
        :return: docs with the references substituted in place
        """
        single = isinstance(docs, dict)
        doclist = [docs] if single else docs
        for child in self.children:
            if not child.populate_sub_docs:
                continue
            refids = set()
            for doc in doclist:
                ref = doc.get(child.path)
                if isinstance(ref, list):
                    refids.update(ref)
                elif ref is not None:
                    refids.add(ref)
            if not refids:
                continue
            subdocs = list(child.entity.collection.find({"_id": {"$in": list(refids)}}))
            child.populate(subdocs)
            by_id = { x["_id"]: x for x in subdocs }
            for doc in doclist:
                ref = doc.get(child.path)
                if isinstance(ref, list):
                    doc[child.path] = [by_id[x] for x in ref if x in by_id]
                elif ref is not None:
                    if ref not in by_id:
                        logger.warning("Cannot find %s %s referenced from %s", child.entity.name, ref, self.entity.name)
                    doc[child.path] = by_id.get(ref)
        return docs


def is_excluded(field, kind, ex_version_id=False, ex_timestamp=False, ex_paths=None, ex_types=None, predicate=None):
    """
    Check a field against the exclusion options.
    The id/version and timestamp fields are excluded only if the corresponding flag is set.
    Fields in ex_paths or with a kind in ex_types are always excluded; lastly, the predicate(field, kind) may veto the field.
    """
    if ex_version_id and field in ID_VERSION_FIELDS:
        return True
    if ex_timestamp and field in TIMESTAMP_FIELDS:
        return True
    if ex_paths and field in ex_paths:
        return True
    if ex_types and kind in ex_types:
        return True
    if predicate and predicate(field, kind):
        return True
    return False


def _declares(node, field, options):
    kind = node.entity.field_kinds.get(field)
    if kind is None:
        return False
    return not is_excluded(field, kind, **options)


def _resolve_dotted(node, field, options):
    head, _, rest = field.partition(".")
    if not rest:
        return node if _declares(node, head, options) else False
    if options.get("ex_paths") and head in options["ex_paths"]:
        return False
    child = node.find_child(head)
    if child is None:
        return False
    return _resolve_dotted(child, rest, options)


def is_valid_path(nodes, field, ex_paths=None, check_subtree=False, ex_version_id=True, ex_timestamp=True, ex_types=None, predicate=None):
    """
    Find the node whose entity declares field.
    :param nodes - a ModelNode or a list of ModelNode's; checked in order, first match wins
    :param field - a bare field name, or a dotted path through child paths, for example, address.town
    :param ex_paths - field names that are never valid
    :param check_subtree - if True, check every node in the tree below each node; else, only the node itself
    :return: The declaring ModelNode or False
    """
    if not field:
        return False
    if isinstance(nodes, ModelNode):
        nodes = [nodes]
    options = { "ex_version_id": ex_version_id, "ex_timestamp": ex_timestamp, "ex_paths": ex_paths, "ex_types": ex_types, "predicate": predicate }
    if ex_paths and field in ex_paths:
        return False
    for node in nodes:
        if "." in field:
            found = _resolve_dotted(node, field, options)
            if found:
                return found
            continue
        candidates = node.preorder() if check_subtree else [node]
        for candidate in candidates:
            if _declares(candidate, field, options):
                return candidate
    return False


def field_kind(node, field):
    """
    The FieldKind of a bare or dotted field on the node that declares it.
    """
    return node.entity.field_kinds.get(field.rpartition(".")[2], FieldKind.TEXT)
