'''
Decode the query string of a request into a MongoDB query.

The query string is a flat map of keys to values.
    field=value          - a condition on a single field
    fields=a b c         - return only the fields a, b and c of the root documents
    a|b=value            - either field a or field b matches value; a and b must be fields of the same entity
    a+b=value            - both fields a and b match value; a and b must be fields of the same entity
    $or=f1=v1,f2=v2      - logical OR of single field conditions; likewise $and and $nor
Fields are resolved against the relationship tree of the root entity; so a query on people can use the fields of their addresses.
How a value is compared depends on the kind of the field; see decode_value.
All the problems found in a query string are reported together in one QueryDecodeError.
'''

import re
import math
import logging

import dateutil.parser

from dal.models.common import FieldKind
from dal.model_node import is_valid_path, field_kind
from dal.utils import to_object_id
from services.errors import QueryDecodeError

logger = logging.getLogger(__name__)

FIELDS_KEY = "fields"
TOKEN_KEY = "token"
OR_SEPARATOR = "|"
AND_SEPARATORS = ("+", " ")
GROUP_KEYS = ("$or", "$and", "$nor")
NOT_KEY = "$not"

_COMPARISON_OPS = [(">=", "$gte"), ("<=", "$lte"), (">", "$gt"), ("<", "$lt"), ("!", "$ne")]

_TRUE_VALUES = ("true", "1", "yes")
_FALSE_VALUES = ("false", "0", "no")


class ValueDecodeError(ValueError):
    pass


class QueryTerm(object):
    """
    One independently resolvable part of a query; a condition on the collection of a single node.
    A union term has alternatives; a list of (node, clause) pairs on different nodes, any of which may match.
    """
    def __init__(self, key, node, clause, alternatives=None):
        self.key = key
        self.node = node
        self.clause = clause
        self.alternatives = alternatives

    def __repr__(self):
        return "QueryTerm(%s, %s, %s)" % (self.key, self.node, self.clause)

    def nodes(self):
        if self.alternatives:
            return [n for n, _ in self.alternatives]
        return [self.node]

    def is_on(self, node):
        return all(n is node for n in self.nodes())


class QueryDescriptor(object):
    """
    The decoded query string of one request.
    select - space separated names of the root fields to return; empty for all
    filter - the conditions of all the terms merged into one filter
    field_nodes - the query key -> ModelNode that the key resolved against
    terms - the QueryTerm's
    """
    def __init__(self, root, select="", terms=None, field_nodes=None):
        self.root = root
        self.select = select
        self.terms = terms or []
        self.field_nodes = field_nodes or {}
        self.filter = merge_clauses([t.clause for t in self.terms if not t.alternatives])

    def select_fields(self):
        return self.select.split() if self.select else []

    def is_root_only(self):
        """
        True if every term can be run directly against the root collection.
        """
        return all(t.is_on(self.root) for t in self.terms)


def merge_clauses(clauses):
    """
    Merge the clauses into one filter; use $and if the same key appears more than once.
    """
    ret = {}
    for clause in clauses:
        if any(k in ret for k in clause):
            return {"$and": list(clauses)} if len(clauses) > 1 else dict(clauses[0])
        ret.update(clause)
    return ret


def _split_comparison(value):
    for prefix, op in _COMPARISON_OPS:
        if value.startswith(prefix):
            return op, value[len(prefix):].strip()
    return None, value.strip()


def _parse_number(raw):
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        num = float(raw)
    except ValueError:
        raise ValueDecodeError("'%s' is not a number" % raw)
    if not math.isfinite(num):
        raise ValueDecodeError("'%s' is not a number" % raw)
    return num


def _parse_date(raw):
    try:
        return dateutil.parser.parse(raw)
    except (ValueError, OverflowError):
        raise ValueDecodeError("'%s' is not a date" % raw)


def _parse_boolean(raw):
    lowered = raw.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueDecodeError("'%s' is not a boolean" % raw)


def _compile(pattern):
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        raise ValueDecodeError("'%s' is not a valid pattern: %s" % (pattern, e))


def _ordered_condition(raw, parser):
    op, operand = _split_comparison(raw)
    value = parser(operand)
    return value if op is None else {op: value}


def decode_numeric(raw):
    """
    !x is not equal to x; >x, >=x, <x and <=x compare; otherwise, equal to x.
    """
    return _ordered_condition(raw, _parse_number)


def decode_date(raw):
    return _ordered_condition(raw, _parse_date)


def decode_boolean(raw):
    if raw.startswith("!"):
        return {"$ne": _parse_boolean(raw[1:].strip())}
    return _parse_boolean(raw.strip())


def decode_identifier(raw):
    oid = to_object_id(raw)
    return oid if oid is not None else raw


def decode_text(raw):
    """
    Case insensitive matching.
    !~ matches any non blank value; ~ matches a blank value; !x matches values that do not contain x.
    Anything else is used as a pattern.
    """
    if raw == "!~":
        return _compile(r"\S")
    if raw == "~":
        return _compile(r"^\s*$")
    if raw == "!":
        raise ValueDecodeError("'!' needs a pattern to exclude")
    if raw.startswith("!"):
        _compile(raw[1:])
        return _compile("^((?!" + raw[1:] + ").)*$")
    return _compile(raw)


_DECODERS = {
    FieldKind.NUMERIC: decode_numeric,
    FieldKind.IDENTIFIER: decode_identifier,
    FieldKind.TEXT: decode_text,
    FieldKind.DATE: decode_date,
    FieldKind.BOOLEAN: decode_boolean,
}


def decode_value(kind, raw):
    """
    The condition on a field of the specified kind for the raw query string value.
    :raises ValueDecodeError if the value cannot be used with this kind of field
    """
    return _DECODERS[kind](raw)


class _Decoder(object):
    def __init__(self, root, check_subtree, ex_paths):
        self.root = root
        self.check_subtree = check_subtree
        self.ex_paths = ex_paths
        self.unknown_fields = []
        self.problems = []
        self.field_nodes = {}
        self.terms = []
        self.select = ""

    def resolve(self, field, check_subtree=None):
        node = is_valid_path(self.root, field, ex_paths=self.ex_paths,
                             check_subtree=self.check_subtree if check_subtree is None else check_subtree,
                             ex_version_id=False, ex_timestamp=False)
        if node is False:
            self.unknown_fields.append(field)
        return node

    def condition(self, node, field, raw):
        """
        The clause for field against the collection of node; None if the value cannot be decoded.
        """
        bare = field.rpartition(".")[2]
        try:
            return { bare: decode_value(field_kind(node, field), raw) }
        except ValueDecodeError as e:
            self.problems.append("Invalid value for %s: %s" % (field, e))
            return None

    def decode_fields(self, value):
        """
        Only fields of the root documents themselves can be selected; dotted paths into sub documents are unknown.
        """
        selected = self.select.split()
        for field in re.split(r"[\s+]+", value.strip()):
            if not field:
                continue
            if "." in field:
                self.unknown_fields.append(field)
            elif self.resolve(field, check_subtree=False) is not False and field not in selected:
                selected.append(field)
        self.select = " ".join(selected)

    def decode_single(self, key, raw):
        node = self.resolve(key)
        if node is False:
            return
        clause = self.condition(node, key, raw)
        if clause is not None:
            self.field_nodes[key] = node
            self.terms.append(QueryTerm(key, node, clause))

    def decode_multi_field(self, key, raw):
        has_or = OR_SEPARATOR in key
        has_and = any(sep in key for sep in AND_SEPARATORS)
        if has_or and has_and:
            self.problems.append("Cannot mix OR and AND fields in '%s'" % key)
            return
        op, opname = ("$or", "OR") if has_or else ("$and", "AND")
        fields = [f for f in re.split(r"[|+ ]", key) if f]
        nodes = [(f, self.resolve(f)) for f in fields]
        if any(n is False for _, n in nodes):
            return
        if len({id(n) for _, n in nodes}) > 1:
            self.problems.append("%s queries restricted to within a single model" % opname)
            return
        node = nodes[0][1]
        clauses = [self.condition(node, f, raw) for f in fields]
        if any(c is None for c in clauses):
            return
        for f in fields:
            self.field_nodes[f] = node
        self.terms.append(QueryTerm(key, node, {op: clauses}))

    def decode_group(self, op, value):
        members = []
        for member in value.split(","):
            member = member.strip()
            if not member:
                continue
            field, sep, raw = member.partition("=")
            field = field.strip()
            if not sep or not field:
                self.problems.append("Invalid %s member '%s'; expected field=value" % (op, member))
                continue
            if OR_SEPARATOR in field or any(s in field for s in AND_SEPARATORS):
                self.problems.append("Multi-field members are not supported in %s queries" % op)
                continue
            node = self.resolve(field)
            if node is False:
                continue
            clause = self.condition(node, field, raw)
            if clause is not None:
                self.field_nodes[field] = node
                members.append((node, clause))
        if not members:
            return

        by_node = []
        for node, clause in members:
            for entry in by_node:
                if entry[0] is node:
                    entry[1].append(clause)
                    break
            else:
                by_node.append((node, [clause]))

        if len(by_node) == 1:
            node, clauses = by_node[0]
            self.terms.append(QueryTerm(op, node, {op: clauses}))
        elif op == "$and":
            for node, clauses in by_node:
                self.terms.append(QueryTerm(op, node, {op: clauses}))
        elif op == "$or":
            alternatives = [(node, {op: clauses}) for node, clauses in by_node]
            self.terms.append(QueryTerm(op, None, {op: [c for _, c in members]}, alternatives=alternatives))
        else:
            self.problems.append("NOR queries restricted to within a single model")

    def decode(self, args):
        # A repeated key, for example, age=>18&age=<65, gives one term per value
        pairs = args.items(multi=True) if hasattr(args, "getlist") else args.items()
        for key, value in pairs:
            if key == TOKEN_KEY:
                continue
            value = value if value is not None else ""
            if key == FIELDS_KEY:
                self.decode_fields(value)
            elif key == NOT_KEY:
                self.problems.append("NOT queries are not supported")
            elif key in GROUP_KEYS:
                self.decode_group(key, value)
            elif OR_SEPARATOR in key or any(sep in key.strip() for sep in AND_SEPARATORS):
                self.decode_multi_field(key.strip(), value)
            else:
                self.decode_single(key, value)

        errors = []
        if self.unknown_fields:
            errors.append("Unknown field name(s): " + ",".join(self.unknown_fields))
        errors.extend(self.problems)
        if errors:
            logger.debug("Query decode errors %s", errors)
            raise QueryDecodeError(errors)
        return QueryDescriptor(self.root, select=self.select, terms=self.terms, field_nodes=self.field_nodes)


def decode_query(args, root, check_subtree=True, ex_paths=None):
    """
    Decode the query string arguments of a request.
    :param args - a mapping of query string keys to values, for example, request.args
    :param root - the ModelNode of the entity being queried
    :param check_subtree - if True, fields may belong to any entity in the root's tree; else, only to the root entity
    :param ex_paths - fields that may not be used; defaults to the root entity's excluded fields
    :return: A QueryDescriptor
    :raises QueryDecodeError with all the problems found
    """
    if ex_paths is None:
        ex_paths = root.entity.ex_paths
    return _Decoder(root, check_subtree, ex_paths).decode(args)
