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
Immutable description of a D-Bus interface.
"""

# isort: STDLIB
import enum
from collections import namedtuple

# isort: THIRDPARTY
from _dbus_bindings import validate_interface_name, validate_member_name

from ._errors import InvalidDeclaration


class Access(enum.Enum):
    """
    Property access modes.
    """

    READ = "read"
    WRITE = "write"
    READWRITE = "readwrite"

    @property
    def readable(self):
        """
        Whether the property can be read.
        """
        return self is not Access.WRITE

    @property
    def writable(self):
        """
        Whether the property can be set.
        """
        return self is not Access.READ


class EmitsChanged(enum.Enum):
    """
    Property change notification policies.

    TRUE sends the new value, INVALIDATES only the name. CONST properties
    never change, so clients may cache them.
    """

    TRUE = "true"
    INVALIDATES = "invalidates"
    CONST = "const"
    FALSE = "false"


class ExecutionMode(enum.Enum):
    """
    How a handler runs.
    """

    SYNC = "sync"
    ASYNC = "async"


class Direction(enum.Enum):
    """
    Argument direction.
    """

    IN = "in"
    OUT = "out"


class ParamSpec(namedtuple("ParamSpec", ["name", "wire_type", "direction"])):
    """
    A single argument of a method or signal.
    """

    # pylint: disable=too-few-public-methods

    __slots__ = ()

    @property
    def signature(self):
        """
        The argument's D-Bus signature.
        """
        return self.wire_type.signature


class MethodSpec(
    namedtuple(
        "MethodSpec",
        [
            "name",
            "in_args",
            "out_args",
            "fallible",
            "errors",
            "mode",
            "deprecated",
            "attribute",
        ],
    )
):
    """
    A method: its arguments, failure declaration and execution mode.

    attribute is the Python attribute implementing the method, None if the
    description did not come from a Python declaration.
    """

    __slots__ = ()

    @property
    def in_signature(self):
        """
        The concatenated input signature.
        """
        return "".join(p.signature for p in self.in_args)

    @property
    def out_signature(self):
        """
        The concatenated output signature.
        """
        return "".join(p.signature for p in self.out_args)


class PropertySpec(
    namedtuple(
        "PropertySpec",
        ["name", "wire_type", "access", "emits_changed", "attribute"],
    )
):
    """
    A property.
    """

    __slots__ = ()

    @property
    def signature(self):
        """
        The property's D-Bus signature.
        """
        return self.wire_type.signature

    @property
    def cacheable(self):
        """
        Whether a client may cache the value.
        """
        return self.emits_changed is EmitsChanged.CONST


class SignalSpec(
    namedtuple("SignalSpec", ["name", "args", "deprecated", "attribute"])
):
    """
    A signal.
    """

    # pylint: disable=too-few-public-methods

    __slots__ = ()

    @property
    def signature(self):
        """
        The concatenated signature of the signal's arguments.
        """
        return "".join(p.signature for p in self.args)


class InterfaceDescription(
    namedtuple(
        "InterfaceDescription", ["name", "methods", "properties", "signals"]
    )
):
    """
    A complete interface. Build with build_description().
    """

    __slots__ = ()

    def method(self, name):
        """
        Look up a method.

        :param str name: the member name
        :rtype: MethodSpec or NoneType
        """
        return next((m for m in self.methods if m.name == name), None)

    def property(self, name):
        """
        Look up a property.

        :param str name: the member name
        :rtype: PropertySpec or NoneType
        """
        return next((p for p in self.properties if p.name == name), None)

    def signal(self, name):
        """
        Look up a signal.

        :param str name: the member name
        :rtype: SignalSpec or NoneType
        """
        return next((s for s in self.signals if s.name == name), None)


def is_valid_interface_name(name):
    """
    Whether name is a valid interface (or error) name.

    :param str name: the candidate
    :rtype: bool
    """
    try:
        validate_interface_name(name)
    except (TypeError, ValueError):
        return False
    return True


def is_valid_member_name(name):
    """
    Whether name is a valid member name.

    :param str name: the candidate
    :rtype: bool
    """
    try:
        validate_member_name(name)
    except (TypeError, ValueError):
        return False
    return True


def _check_args(kind, member, args, direction):
    names = [p.name for p in args if p.name]
    if len(frozenset(names)) != len(names):
        raise InvalidDeclaration(
            "%s %s has duplicate argument names" % (kind, member)
        )
    for param in args:
        if param.direction is not direction:
            raise InvalidDeclaration(
                "%s %s: argument %r must have direction %s"
                % (kind, member, param.name, direction.value)
            )


def build_description(name, methods=(), properties=(), signals=()):
    """
    Validate the parts of an interface and assemble its description.

    :param str name: the interface name
    :param methods: the methods
    :type methods: iterable of MethodSpec
    :param properties: the properties
    :type properties: iterable of PropertySpec
    :param signals: the signals
    :type signals: iterable of SignalSpec
    :rtype: InterfaceDescription
    :raises InvalidDeclaration: if any part is invalid
    """
    methods = tuple(methods)
    properties = tuple(properties)
    signals = tuple(signals)

    if not is_valid_interface_name(name):
        raise InvalidDeclaration("invalid interface name %r" % (name,))

    seen = set()
    for member in methods + properties + signals:
        if not is_valid_member_name(member.name):
            raise InvalidDeclaration(
                "invalid member name %r in interface %s" % (member.name, name)
            )
        if member.name in seen:
            raise InvalidDeclaration(
                "duplicate member name %s in interface %s" % (member.name, name)
            )
        seen.add(member.name)

    for spec in methods:
        _check_args("method", spec.name, spec.in_args, Direction.IN)
        _check_args("method", spec.name, spec.out_args, Direction.OUT)
        if not isinstance(spec.mode, ExecutionMode):
            raise InvalidDeclaration(
                "method %s has no valid execution mode" % spec.name
            )

    for spec in signals:
        _check_args("signal", spec.name, spec.args, Direction.OUT)

    for spec in properties:
        if not isinstance(spec.access, Access):
            raise InvalidDeclaration(
                "property %s must have exactly one access mode" % spec.name
            )
        if not isinstance(spec.emits_changed, EmitsChanged):
            raise InvalidDeclaration(
                "property %s has no valid change notification policy" % spec.name
            )

    return InterfaceDescription(name, methods, properties, signals)
