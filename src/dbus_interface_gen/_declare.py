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
Declaration surface: decorators that attach D-Bus interface metadata to
Python classes, and construction of interface descriptions from those
classes or from introspection XML.
"""

# isort: STDLIB
import inspect
import typing
import xml.etree.ElementTree as ET
from collections import namedtuple

from ._constants import (
    DEFAULT_INTERFACE_PREFIX,
    DEPRECATED_ANNOTATION,
    EMITS_CHANGED_ANNOTATION,
)
from ._errors import DBusError, InvalidDeclaration, UnsupportedType
from ._model import (
    Access,
    Direction,
    EmitsChanged,
    ExecutionMode,
    MethodSpec,
    ParamSpec,
    PropertySpec,
    SignalSpec,
    build_description,
)
from ._signature import is_valid_signature, wire_type

_MethodDecl = namedtuple(
    "_MethodDecl", ["name", "out_args", "fallible", "errors", "deprecated"]
)


def member_name(attribute):
    """
    Convert a Python attribute name to a D-Bus member name.

    "get_value" becomes "GetValue".

    :param str attribute: the Python name
    :rtype: str
    """
    return "".join(part[:1].upper() + part[1:] for part in attribute.split("_"))


def _resolve(annotation, func):
    """
    Resolve an annotation to a semantic type.

    A string that is a complete D-Bus signature is kept as is; any other
    string is resolved by typing.get_type_hints as a forward reference in
    func's module.
    """
    if not isinstance(annotation, str) or is_valid_signature(
        annotation, complete=True
    ):
        return annotation

    def holder(value):  # pylint: disable=unused-argument
        pass

    holder.__annotations__ = {"value": annotation}
    try:
        return typing.get_type_hints(
            holder, globalns=getattr(func, "__globals__", {})
        )["value"]
    except (NameError, SyntaxError, AttributeError, TypeError) as err:
        raise InvalidDeclaration(
            "can not resolve annotation %r of %s: %s"
            % (annotation, func.__qualname__, err)
        ) from err


def _wire_type(annotation, func, what):
    try:
        return wire_type(_resolve(annotation, func))
    except UnsupportedType as err:
        raise InvalidDeclaration(
            "%s of %s: %s" % (what, func.__qualname__, err)
        ) from err


def _in_args(func):
    """
    The input arguments of a handler, all but the first parameter.
    """
    parameters = list(inspect.signature(func).parameters.values())[1:]
    result = []
    for param in parameters:
        if param.kind not in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
        ):
            raise InvalidDeclaration(
                "%s: parameter %s must be positional"
                % (func.__qualname__, param.name)
            )
        if param.annotation is inspect.Parameter.empty:
            raise InvalidDeclaration(
                "%s: parameter %s has no type annotation"
                % (func.__qualname__, param.name)
            )
        result.append(
            ParamSpec(
                param.name,
                _wire_type(param.annotation, func, "parameter %s" % param.name),
                Direction.IN,
            )
        )
    return tuple(result)


def _out_args(func, names):
    """
    The output arguments of a handler, from its return annotation.

    :param func: the handler
    :param names: declared output names
    :type names: tuple of str
    """
    annotation = inspect.signature(func).return_annotation
    if annotation in (inspect.Signature.empty, None, type(None)):
        if names:
            raise InvalidDeclaration(
                "%s declares outputs but returns nothing" % func.__qualname__
            )
        return ()

    annotation = _resolve(annotation, func)
    if len(names) > 1:
        members = typing.get_args(annotation)
        if typing.get_origin(annotation) is not tuple or len(members) != len(
            names
        ):
            raise InvalidDeclaration(
                "%s declares %d outputs, its return annotation must be a "
                "Tuple of as many types" % (func.__qualname__, len(names))
            )
        return tuple(
            ParamSpec(n, _wire_type(t, func, "output %s" % n), Direction.OUT)
            for (n, t) in zip(names, members)
        )

    name = names[0] if names else ""
    return (ParamSpec(name, _wire_type(annotation, func, "return"), Direction.OUT),)


def method(name=None, out_args=(), fallible=False, errors=(), deprecated=False):
    """
    Mark a function as a D-Bus method.

    :param name: the member name, derived from the function name if None
    :type name: str or NoneType
    :param out_args: names of the outputs
    :type out_args: str or sequence of str
    :param bool fallible: whether any DBusError raised is a declared failure
    :param errors: the DBusError subclasses the method may raise
    :type errors: sequence of type
    :param bool deprecated: whether the method is deprecated
    """
    if isinstance(out_args, str):
        out_args = (out_args,)

    def decorator(func):
        func.__dbus_method__ = _MethodDecl(
            name, tuple(out_args), fallible, tuple(errors), deprecated
        )
        return func

    return decorator


class DbusProperty:
    """
    Descriptor for a D-Bus property, used like the builtin property.
    """

    def __init__(
        self,
        fget=None,
        fset=None,
        access=None,
        emits_changed=EmitsChanged.TRUE,
        name=None,
    ):
        # pylint: disable=too-many-arguments
        self.fget = fget
        self.fset = fset
        self.access = access
        self.emits_changed = emits_changed
        self.name = name
        self.attribute = None
        self.__doc__ = getattr(fget, "__doc__", None)

    def __set_name__(self, owner, name):
        self.attribute = name

    def __get__(self, obj, objtype=None):
        if obj is None:
            return self
        if self.fget is None:
            raise AttributeError("property %s is write-only" % self.attribute)
        return self.fget(obj)

    def __set__(self, obj, value):
        if self.fset is None:
            raise AttributeError("property %s is read-only" % self.attribute)
        self.fset(obj, value)

    def setter(self, fset):
        """
        Attach a setter.
        """
        return DbusProperty(
            self.fget, fset, self.access, self.emits_changed, self.name
        )

    def spec(self, owner):
        """
        Build the property's specification.

        :param type owner: the declaring class
        :rtype: PropertySpec
        """
        qualname = "%s.%s" % (owner.__qualname__, self.attribute)
        access = self.access
        if access is None:
            access = Access.READ if self.fset is None else Access.READWRITE

        if access.readable != (self.fget is not None):
            raise InvalidDeclaration(
                "property %s has access %s but %s getter"
                % (qualname, access.value, "a" if self.fget else "no")
            )
        if access.writable != (self.fset is not None):
            raise InvalidDeclaration(
                "property %s has access %s but %s setter"
                % (qualname, access.value, "a" if self.fset else "no")
            )

        if self.fget is not None:
            annotation = inspect.signature(self.fget).return_annotation
            source = self.fget
        else:
            params = list(inspect.signature(self.fset).parameters.values())
            annotation = (
                params[1].annotation
                if len(params) == 2
                else inspect.Parameter.empty
            )
            source = self.fset
        if annotation in (inspect.Signature.empty, None):
            raise InvalidDeclaration("property %s has no type annotation" % qualname)

        return PropertySpec(
            member_name(self.attribute) if self.name is None else self.name,
            _wire_type(annotation, source, "property type"),
            access,
            self.emits_changed,
            self.attribute,
        )


def dbus_property(access=None, emits_changed=EmitsChanged.TRUE, name=None):
    """
    Mark a getter as a D-Bus property.

    With access=Access.WRITE the decorated function is the setter and
    its value parameter carries the type.

    :param access: the access mode, inferred from the setter if None
    :type access: Access or NoneType
    :param EmitsChanged emits_changed: change notification policy
    :param name: the member name, derived from the function name if None
    :type name: str or NoneType
    """

    def decorator(func):
        if access is Access.WRITE:
            return DbusProperty(None, func, access, emits_changed, name)
        return DbusProperty(func, None, access, emits_changed, name)

    return decorator


class DbusSignal:
    """
    Descriptor for a D-Bus signal.

    The decorated function's parameters are the signal's arguments; its
    body is never run. Calling the signal on an instance emits it through
    every router serving that instance.
    """

    def __init__(self, func, name=None, deprecated=False):
        self.func = func
        self.name = name
        self.deprecated = deprecated
        self.attribute = None
        self.__doc__ = func.__doc__

    def __set_name__(self, owner, name):
        self.attribute = name

    def __get__(self, obj, objtype=None):
        if obj is None:
            return self

        def emit(*args):
            routers = obj.__dict__.get("_dbus_routers", ())
            spec_name = (
                member_name(self.attribute) if self.name is None else self.name
            )
            return [
                router.emit(spec_name, args)
                for router in routers
                if router.description.signal(spec_name) is not None
            ]

        return emit

    def spec(self):
        """
        Build the signal's specification.

        :rtype: SignalSpec
        """
        args = tuple(
            ParamSpec(p.name, p.wire_type, Direction.OUT)
            for p in _in_args(self.func)
        )
        return SignalSpec(
            member_name(self.attribute) if self.name is None else self.name,
            args,
            self.deprecated,
            self.attribute,
        )


def signal(name=None, deprecated=False):
    """
    Mark a function as a D-Bus signal.

    :param name: the member name, derived from the function name if None
    :type name: str or NoneType
    :param bool deprecated: whether the signal is deprecated
    """

    def decorator(func):
        return DbusSignal(func, name, deprecated)

    return decorator


def _method_spec(attribute, func):
    decl = func.__dbus_method__
    for error in decl.errors:
        if not (isinstance(error, type) and issubclass(error, DBusError)):
            raise InvalidDeclaration(
                "%s: declared error %r is not a DBusError subclass"
                % (func.__qualname__, error)
            )
    return MethodSpec(
        member_name(attribute) if decl.name is None else decl.name,
        _in_args(func),
        _out_args(func, decl.out_args),
        decl.fallible or decl.errors != (),
        decl.errors,
        ExecutionMode.ASYNC
        if inspect.iscoroutinefunction(func)
        else ExecutionMode.SYNC,
        decl.deprecated,
        attribute,
    )


def build_interface(cls, name=None):
    """
    Build the description of the interface declared by cls's own members.

    :param type cls: the declaring class
    :param name: the interface name, "org.freedesktop.<class name>" if None
    :type name: str or NoneType
    :rtype: InterfaceDescription
    :raises InvalidDeclaration:
    """
    if name is None:
        name = "%s.%s" % (DEFAULT_INTERFACE_PREFIX, cls.__name__)

    methods = []
    properties = []
    signals = []
    for (attribute, value) in vars(cls).items():
        if isinstance(value, DbusProperty):
            properties.append(value.spec(cls))
        elif isinstance(value, DbusSignal):
            signals.append(value.spec())
        elif hasattr(value, "__dbus_method__"):
            methods.append(_method_spec(attribute, value))

    return build_description(name, methods, properties, signals)


def interface(name=None):
    """
    Class decorator declaring a D-Bus interface.

    The description is built when the class is defined, so declaration
    errors surface then. It is stored as __dbus_interface__.

    :param name: the interface name, "org.freedesktop.<class name>" if None
    :type name: str or NoneType
    """
    if isinstance(name, type):
        return interface()(name)

    def decorator(cls):
        cls.__dbus_interface__ = build_interface(cls, name)
        return cls

    return decorator


def interfaces_of(obj):
    """
    The descriptions of all interfaces declared on obj's class hierarchy.

    :param object obj: an instance of one or more @interface classes
    :rtype: list of InterfaceDescription
    """
    return [
        klass.__dict__["__dbus_interface__"]
        for klass in type(obj).__mro__
        if "__dbus_interface__" in klass.__dict__
    ]


def _xml_args(element, kind, member, default_direction):
    result = []
    for arg in element.findall("./arg"):
        direction = arg.attrib.get("direction", default_direction)
        try:
            direction = Direction(direction)
        except ValueError as err:
            raise InvalidDeclaration(
                "%s %s: bad direction %r" % (kind, member, direction)
            ) from err
        result.append(
            ParamSpec(arg.attrib.get("name", ""), wire_type(arg.attrib["type"]), direction)
        )
    return result


def _annotations(element):
    return dict(
        (a.attrib["name"], a.attrib["value"]) for a in element.findall("./annotation")
    )


def from_xml(spec):
    """
    Build a description from an introspection <interface> element.

    :param spec: the element, or its XML text
    :type spec: Element or str
    :rtype: InterfaceDescription
    :raises InvalidDeclaration:
    :raises UnsupportedType: if a type attribute is not a valid signature
    """
    if isinstance(spec, str):
        try:
            spec = ET.fromstring(spec)
        except ET.ParseError as err:
            raise InvalidDeclaration("malformed introspection data: %s" % err) from err

    if spec.tag != "interface":
        raise InvalidDeclaration("expected <interface>, found <%s>" % spec.tag)

    methods = []
    for element in spec.findall("./method"):
        name = element.attrib["name"]
        args = _xml_args(element, "method", name, "in")
        methods.append(
            MethodSpec(
                name,
                tuple(a for a in args if a.direction is Direction.IN),
                tuple(a for a in args if a.direction is Direction.OUT),
                True,
                (),
                ExecutionMode.SYNC,
                _annotations(element).get(DEPRECATED_ANNOTATION) == "true",
                None,
            )
        )

    properties = []
    for element in spec.findall("./property"):
        name = element.attrib["name"]
        try:
            access = Access(element.attrib.get("access"))
            emits_changed = EmitsChanged(
                _annotations(element).get(EMITS_CHANGED_ANNOTATION, "true")
            )
        except ValueError as err:
            raise InvalidDeclaration("property %s: %s" % (name, err)) from err
        properties.append(
            PropertySpec(
                name, wire_type(element.attrib["type"]), access, emits_changed, None
            )
        )

    signals = []
    for element in spec.findall("./signal"):
        name = element.attrib["name"]
        signals.append(
            SignalSpec(
                name,
                tuple(_xml_args(element, "signal", name, "out")),
                _annotations(element).get(DEPRECATED_ANNOTATION) == "true",
                None,
            )
        )

    return build_description(spec.attrib.get("name"), methods, properties, signals)
