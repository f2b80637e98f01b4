# Copyright 2016 Red Hat, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""
Mapping of Python types to D-Bus signatures and conversion of values
to and from dbus-python values.
"""

# isort: STDLIB
import collections.abc
import dataclasses
import enum
import functools
import types
import typing
from collections import namedtuple

# isort: THIRDPARTY
import dbus
from into_dbus_python import IntoDPError, xformer
from into_dbus_python import signature as value_signature

from ._errors import ArgumentMismatch, UnsupportedType
from ._types import MARKER_TYPES, ObjectPath, Signature, UnixFd, Variant

_BASIC_CODES = "ybnqiuxtdsogh"

_INTEGER_RANGES = {
    "y": (0, 2**8 - 1),
    "n": (-(2**15), 2**15 - 1),
    "q": (0, 2**16 - 1),
    "i": (-(2**31), 2**31 - 1),
    "u": (0, 2**32 - 1),
    "x": (-(2**63), 2**63 - 1),
    "t": (0, 2**64 - 1),
    "h": (0, 2**32 - 1),
}

_UNION_TYPES = (typing.Union, getattr(types, "UnionType", typing.Union))

_SEQUENCE_ORIGINS = (
    list,
    collections.abc.Sequence,
    collections.abc.MutableSequence,
)

_MAPPING_ORIGINS = (
    dict,
    collections.abc.Mapping,
    collections.abc.MutableMapping,
)

_INTEGER_DBUS_TYPES = (
    dbus.Byte,
    dbus.Int16,
    dbus.UInt16,
    dbus.Int32,
    dbus.UInt32,
    dbus.Int64,
    dbus.UInt64,
)


class WireType(namedtuple("WireType", ["signature", "encode", "decode"])):
    """
    The signature of a semantic type and its conversion strategy.

    encode maps a semantic value to a plain value in the shape the
    signature requires; decode maps a dbus-python (or plain) value of that
    shape back to the semantic value.
    """

    # pylint: disable=too-few-public-methods

    __slots__ = ()


_REGISTRY = {}


def split_signature(sig):
    """
    Split a signature into its complete types.

    dbus.Signature checks the signature, with its length and nesting
    limits.

    :param str sig: a signature
    :returns: the complete types, in order
    :rtype: list of str
    :raises ValueError: if sig is not a valid signature
    """
    try:
        return [str(s) for s in dbus.Signature(sig)]
    except (TypeError, ValueError) as err:
        raise ValueError("invalid signature %r: %s" % (sig, err)) from err


def is_valid_signature(sig, complete=False):
    """
    Whether sig is a valid signature.

    :param str sig: the candidate
    :param bool complete: if True, require exactly one complete type
    :rtype: bool
    """
    try:
        parts = split_signature(sig)
    except ValueError:
        return False
    return len(parts) == 1 if complete else True


def is_valid_object_path(path):
    """
    Whether path is a valid object path.

    :param str path: the candidate
    :rtype: bool
    """
    try:
        dbus.ObjectPath(path)
    except (TypeError, ValueError):
        return False
    return True


def _dbus_conforms(value, sig):
    try:
        return value_signature(value) == sig
    except (IntoDPError, AttributeError, TypeError, ValueError):
        return False


def conforms(value, sig):
    """
    Whether value has the shape of the complete type sig.

    dbus-python values are checked by their own signature; plain Python
    values strictly, so that a bool is never accepted as an integer and a
    str never as a number.

    :param object value: the value
    :param str sig: a single complete type
    :rtype: bool
    """
    # pylint: disable=too-many-return-statements
    if hasattr(value, "variant_level"):
        return _dbus_conforms(value, sig)

    code = sig[0]
    if code == "b":
        return isinstance(value, bool)

    if code in _INTEGER_RANGES:
        if isinstance(value, bool) or not isinstance(value, int):
            return False
        (low, high) = _INTEGER_RANGES[code]
        return low <= value <= high

    if code == "d":
        return isinstance(value, (int, float)) and not isinstance(value, bool)

    if code == "s":
        return isinstance(value, str)

    if code == "o":
        return isinstance(value, str) and is_valid_object_path(value)

    if code == "g":
        return isinstance(value, str) and is_valid_signature(value)

    if code == "v":
        return (
            isinstance(value, tuple)
            and len(value) == 2
            and isinstance(value[0], str)
            and is_valid_signature(value[0], complete=True)
            and conforms(value[1], value[0])
        )

    if sig.startswith("a{"):
        (key_sig, value_sig) = split_signature(sig[2:-1])
        return isinstance(value, dict) and all(
            conforms(k, key_sig) and conforms(v, value_sig)
            for (k, v) in value.items()
        )

    if code == "a":
        element_sig = sig[1:]
        if element_sig == "y" and isinstance(value, (bytes, bytearray)):
            return True
        return isinstance(value, (list, tuple)) and all(
            conforms(x, element_sig) for x in value
        )

    if code == "(":
        members = split_signature(sig[1:-1])
        return (
            isinstance(value, (list, tuple))
            and len(value) == len(members)
            and all(conforms(x, s) for (x, s) in zip(value, members))
        )

    return False


def zero_value(sig):
    """
    The plain value used for an absent optional of type sig.

    :param str sig: a single complete type
    :returns: a value conforming to sig
    """
    # pylint: disable=too-many-return-statements
    code = sig[0]
    if code == "b":
        return False
    if code == "d":
        return 0.0
    if code in "sg":
        return ""
    if code == "o":
        return "/"
    if code == "v":
        return Variant("s", "")
    if sig.startswith("a{"):
        return {}
    if code == "a":
        return []
    if code == "(":
        return tuple(zero_value(s) for s in split_signature(sig[1:-1]))
    return 0


def _plain(value):
    """
    Convert a dbus-python value to the corresponding plain value, ignoring
    its variant level.
    """
    # pylint: disable=too-many-return-statements
    if isinstance(value, dbus.Boolean):
        return bool(value)
    if isinstance(value, dbus.ObjectPath):
        return ObjectPath(value)
    if isinstance(value, dbus.Signature):
        return Signature(value)
    if isinstance(value, dbus.String):
        return str(value)
    if isinstance(value, dbus.Double):
        return float(value)
    if isinstance(value, dbus.UnixFd):
        return UnixFd(value.take())
    if isinstance(value, _INTEGER_DBUS_TYPES):
        return int(value)
    if isinstance(value, dbus.ByteArray):
        return bytes(value)
    if isinstance(value, dbus.Struct):
        return tuple(to_python(x) for x in value)
    if isinstance(value, dbus.Dictionary):
        return dict((to_python(k), to_python(v)) for (k, v) in value.items())
    if isinstance(value, dbus.Array):
        return [to_python(x) for x in value]
    return value


def to_python(value):
    """
    Convert a dbus-python value to plain Python values.

    Values sent as variants become Variant pairs.

    :param object value: a dbus-python value or a plain value
    :returns: the plain value
    """
    if getattr(value, "variant_level", 0) > 0:
        return Variant(value_signature(value, unpack=True), _plain(value))
    return _plain(value)


def encode_variant(wtype, value):
    """
    Encode a semantic value as a Variant of plain values.

    :param WireType wtype: the value's wire type
    :param object value: the value
    :rtype: Variant
    :raises ArgumentMismatch: if value does not fit wtype
    """
    try:
        encoded = wtype.encode(value)
    except Exception as err:  # pylint: disable=broad-except
        raise ArgumentMismatch(str(err)) from err
    if not conforms(encoded, wtype.signature):
        raise ArgumentMismatch("value does not match signature %s" % wtype.signature)
    return Variant(wtype.signature, encoded)


def unwrap_variant(value):
    """
    Split a variant into its signature and plain contents.

    :param object value: a dbus-python variant or a (signature, value) pair
    :returns: the signature and the plain value
    :rtype: str * object
    :raises ArgumentMismatch: if value is not a variant
    """
    if getattr(value, "variant_level", 0) > 0:
        try:
            return (value_signature(value, unpack=True), _plain(value))
        except IntoDPError as err:
            raise ArgumentMismatch(str(err)) from err
    if (
        not hasattr(value, "variant_level")
        and isinstance(value, tuple)
        and len(value) == 2
        and isinstance(value[0], str)
    ):
        return (value[0], value[1])
    raise ArgumentMismatch("expected a variant")


def _decode_variant(value):
    if hasattr(value, "variant_level"):
        if value.variant_level > 0:
            return to_python(value)
        return Variant(value_signature(value), _plain(value))
    (sig, inner) = value
    return Variant(sig, inner)


def _encode_variant(value):
    if (
        isinstance(value, tuple)
        and len(value) == 2
        and isinstance(value[0], str)
    ):
        return Variant(value[0], value[1])
    raise TypeError("a variant must be a (signature, value) pair")


def _identity(value):
    return value


def _decode_fd(value):
    """
    Take ownership of a received descriptor.

    A dbus.UnixFd holds a duplicate of the descriptor it was made from, so
    the number returned is not the sender's; it refers to the same open
    file, and the receiver must close it.
    """
    if isinstance(value, dbus.UnixFd):
        return UnixFd(value.take())
    return UnixFd(value)


_VARIANT = WireType("v", _encode_variant, _decode_variant)


def _scalar(py_type, sig):
    return WireType(sig, _identity, py_type)


def _array(element):
    return WireType(
        "a" + element.signature,
        lambda value: [element.encode(x) for x in value],
        lambda value: [element.decode(x) for x in value],
    )


def _struct(members, constructor=None):
    """
    A struct of the given member types.

    :param members: member wire types
    :type members: list of WireType
    :param constructor: builds the semantic value from decoded members,
        a tuple if None
    """
    if members == []:
        raise UnsupportedType(constructor, "D-Bus structs may not be empty")

    def encode(value):
        if dataclasses.is_dataclass(value):
            value = tuple(
                getattr(value, f.name) for f in dataclasses.fields(value) if f.init
            )
        value = tuple(value)
        if len(value) != len(members):
            raise ValueError(
                "struct needs %d members, got %d" % (len(members), len(value))
            )
        return tuple(m.encode(x) for (m, x) in zip(members, value))

    def decode(value):
        decoded = (m.decode(x) for (m, x) in zip(members, value))
        return tuple(decoded) if constructor is None else constructor(*decoded)

    return WireType(
        "(" + "".join(m.signature for m in members) + ")", encode, decode
    )


def _dictionary(key, value):
    if len(key.signature) != 1 or key.signature not in _BASIC_CODES:
        raise UnsupportedType(
            key.signature, "D-Bus dict keys must be of a basic type"
        )
    return WireType(
        "a{%s%s}" % (key.signature, value.signature),
        lambda d: dict((key.encode(k), value.encode(v)) for (k, v) in d.items()),
        lambda d: dict((key.decode(k), value.decode(v)) for (k, v) in d.items()),
    )


def _optional(inner):
    default = zero_value(inner.signature)

    def encode(value):
        return (False, default) if value is None else (True, inner.encode(value))

    def decode(value):
        (present, item) = value
        return inner.decode(item) if present else None

    return WireType("(b%s)" % inner.signature, encode, decode)


def _literal(sig):
    if not is_valid_signature(sig, complete=True):
        raise UnsupportedType(sig, "not a single complete D-Bus type")
    if sig == "v":
        return _VARIANT
    return WireType(sig, _identity, to_python)


def _derive_class(py_type):
    """
    Derive the wire type of a class, or None if it has no mapping.
    """
    # pylint: disable=too-many-return-statements
    if issubclass(py_type, UnixFd):
        return WireType("h", _identity, _decode_fd)
    if issubclass(py_type, MARKER_TYPES):
        return _scalar(py_type, py_type.SIGNATURE)
    if issubclass(py_type, Variant):
        return _VARIANT
    if issubclass(py_type, bool):
        return _scalar(bool, "b")
    if issubclass(py_type, enum.IntEnum):
        return WireType("u", int, lambda value: py_type(int(value)))
    if py_type is int:
        return _scalar(int, "i")
    if py_type is float:
        return _scalar(float, "d")
    if py_type is str:
        return _scalar(str, "s")
    if py_type is bytes:
        return WireType("ay", list, bytes)
    if dataclasses.is_dataclass(py_type):
        hints = typing.get_type_hints(py_type)
        return _struct(
            [
                wire_type(hints[f.name])
                for f in dataclasses.fields(py_type)
                if f.init
            ],
            py_type,
        )
    if issubclass(py_type, tuple) and hasattr(py_type, "_fields"):
        hints = typing.get_type_hints(py_type)
        if frozenset(hints) != frozenset(py_type._fields):
            raise UnsupportedType(py_type, "every field must be annotated")
        return _struct([wire_type(hints[f]) for f in py_type._fields], py_type)
    return None


def _derive(py_type):
    """
    Derive the wire type of a semantic type.

    :raises UnsupportedType:
    """
    # pylint: disable=too-many-return-statements
    if isinstance(py_type, str):
        return _literal(py_type)

    # List["ai"] holds ForwardRef("ai")
    if isinstance(py_type, typing.ForwardRef):
        return _literal(py_type.__forward_arg__)

    if py_type in _REGISTRY:
        return _REGISTRY[py_type]

    if py_type is typing.Any:
        return _VARIANT

    origin = typing.get_origin(py_type)
    args = typing.get_args(py_type)

    if origin is None:
        result = _derive_class(py_type) if isinstance(py_type, type) else None
        if result is None:
            raise UnsupportedType(py_type)
        return result

    if origin in _UNION_TYPES:
        members = [a for a in args if a is not type(None)]
        if len(members) == 1 and len(args) == 2:
            return _optional(wire_type(members[0]))
        raise UnsupportedType(py_type, "only Optional unions are supported")

    if origin in _SEQUENCE_ORIGINS and len(args) == 1:
        return _array(wire_type(args[0]))

    if origin is tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            return _array(wire_type(args[0]))
        return _struct([wire_type(a) for a in args if a != ()])

    if origin in _MAPPING_ORIGINS and len(args) == 2:
        return _dictionary(wire_type(args[0]), wire_type(args[1]))

    raise UnsupportedType(py_type)


@functools.lru_cache(maxsize=None)
def wire_type(py_type):
    """
    Get the wire type for a semantic type.

    The result is cached, so repeated calls for the same type return the
    same object.

    :param object py_type: a type, typing construct or literal signature
    :returns: the wire type
    :rtype: WireType
    :raises UnsupportedType: if there is no mapping for py_type
    """
    return _derive(py_type)


def signature(py_type):
    """
    Get the D-Bus signature for a semantic type.

    :param object py_type: a type, typing construct or literal signature
    :rtype: str
    :raises UnsupportedType: if there is no mapping for py_type
    """
    return wire_type(py_type).signature


def register_type(py_type, sig, encode, decode):
    """
    Register an encode/decode strategy for an application type.

    :param type py_type: the application type
    :param str sig: a single complete D-Bus type
    :param encode: maps a py_type value to a plain value conforming to sig
    :param decode: maps a value conforming to sig to a py_type value
    :raises UnsupportedType: if sig is not a single complete type, or
        py_type is already mapped to another signature
    """
    if not is_valid_signature(sig, complete=True):
        raise UnsupportedType(py_type, "invalid signature %r" % sig)
    try:
        current = wire_type(py_type).signature
    except UnsupportedType:
        current = None
    if current not in (None, sig):
        raise UnsupportedType(py_type, "already mapped to %s" % current)
    _REGISTRY[py_type] = WireType(sig, encode, decode)
    wire_type.cache_clear()


def unregister_type(py_type):
    """
    Remove the strategy registered for an application type.

    Wire types derived while it was registered keep it.

    :param type py_type: the application type
    :raises KeyError: if nothing is registered for py_type
    """
    del _REGISTRY[py_type]
    wire_type.cache_clear()


@functools.lru_cache(maxsize=None)
def _xformer(sig):
    return xformer(sig)


def marshal(values, wire_types):
    """
    Encode semantic values as dbus-python values.

    :param values: the values, one per wire type
    :type values: sequence of object
    :param wire_types: the wire types
    :type wire_types: sequence of WireType
    :returns: the dbus-python values
    :rtype: tuple of object
    :raises ArgumentMismatch: if the values do not match the wire types,
        or an encoder fails
    """
    values = list(values)
    if len(values) != len(wire_types):
        raise ArgumentMismatch(
            "expected %d values, got %d" % (len(wire_types), len(values))
        )
    if values == []:
        return ()

    try:
        encoded = [wt.encode(v) for (wt, v) in zip(wire_types, values)]
    except Exception as err:  # pylint: disable=broad-except
        raise ArgumentMismatch(str(err)) from err

    for (index, (wt, value)) in enumerate(zip(wire_types, encoded)):
        if not conforms(value, wt.signature):
            raise ArgumentMismatch(
                "value %d does not match signature %s" % (index, wt.signature)
            )

    try:
        return tuple(_xformer("".join(wt.signature for wt in wire_types))(encoded))
    except (IntoDPError, TypeError, ValueError, OverflowError) as err:
        raise ArgumentMismatch(str(err)) from err


def unmarshal(raw, wire_types):
    """
    Decode dbus-python values, or plain values, into semantic values.

    :param raw: the received values
    :type raw: sequence of object
    :param wire_types: the expected wire types
    :type wire_types: sequence of WireType
    :returns: the semantic values
    :rtype: tuple of object
    :raises ArgumentMismatch: on wrong arity or type, or if a decoder fails
    """
    raw = list(raw)
    if len(raw) != len(wire_types):
        raise ArgumentMismatch(
            "expected %d arguments, got %d" % (len(wire_types), len(raw))
        )

    for (index, (wt, value)) in enumerate(zip(wire_types, raw)):
        if not conforms(value, wt.signature):
            raise ArgumentMismatch(
                "argument %d does not match signature %s" % (index, wt.signature)
            )

    try:
        return tuple(wt.decode(v) for (wt, v) in zip(wire_types, raw))
    except Exception as err:  # pylint: disable=broad-except
        raise ArgumentMismatch(str(err)) from err
