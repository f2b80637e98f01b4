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
Error hierarchy for interface generation, dispatch and proxies.
"""

from ._constants import (
    ERROR_ACCESS_DENIED,
    ERROR_FAILED,
    ERROR_INVALID_ARGS,
    ERROR_PROPERTY_READ_ONLY,
    ERROR_UNKNOWN_INTERFACE,
    ERROR_UNKNOWN_METHOD,
    ERROR_UNKNOWN_OBJECT,
    ERROR_UNKNOWN_PROPERTY,
)


class DbusInterfaceGenError(Exception):
    """
    Top-level error.
    """


class UnsupportedType(DbusInterfaceGenError):
    """
    No wire signature can be derived for a type.
    """

    def __init__(self, py_type, reason=None):
        """
        Initializer.

        :param object py_type: the offending type
        :param reason: an explanation, if any
        :type reason: str or NoneType
        """
        message = "no D-Bus signature for %r" % (py_type,)
        if reason is not None:
            message = "%s: %s" % (message, reason)
        super().__init__(message)
        self.py_type = py_type
        self.reason = reason


class InvalidDeclaration(DbusInterfaceGenError):
    """
    An interface declaration failed validation.
    """

    def __init__(self, reason):
        """
        Initializer.

        :param str reason: what is wrong with the declaration
        """
        super().__init__(reason)
        self.reason = reason


class InterfaceNotFound(DbusInterfaceGenError):
    """
    No interface of the given name is registered at the given path.
    """

    def __init__(self, path, interface_name):
        super().__init__(
            "interface %s not found at %s" % (interface_name, path)
        )
        self.path = path
        self.interface_name = interface_name


class DBusError(DbusInterfaceGenError):
    """
    An error that is transmitted as a D-Bus error reply.

    Subclasses set ERROR_NAME; an instance may override it.
    """

    ERROR_NAME = ERROR_FAILED

    def __init__(self, message="", error_name=None):
        """
        Initializer.

        :param str message: human readable detail, sent as the error body
        :param error_name: D-Bus error name, defaults to the class's
        :type error_name: str or NoneType
        """
        super().__init__(message)
        self.message = message
        self.error_name = self.ERROR_NAME if error_name is None else error_name

    def __str__(self):
        return "%s: %s" % (self.error_name, self.message or "no details")


class UnknownMember(DBusError):
    """
    No method of the requested name.
    """

    ERROR_NAME = ERROR_UNKNOWN_METHOD


class UnknownProperty(UnknownMember):
    """
    No property of the requested name.
    """

    ERROR_NAME = ERROR_UNKNOWN_PROPERTY


class UnknownInterface(UnknownMember):
    """
    No interface of the requested name at the object.
    """

    ERROR_NAME = ERROR_UNKNOWN_INTERFACE


class UnknownObject(UnknownMember):
    """
    No object at the requested path.
    """

    ERROR_NAME = ERROR_UNKNOWN_OBJECT


class ArgumentMismatch(DBusError):
    """
    Arguments do not match the declared input signature.
    """

    ERROR_NAME = ERROR_INVALID_ARGS


class PropertyReadOnly(DBusError):
    """
    Attempt to set a read-only property.
    """

    ERROR_NAME = ERROR_PROPERTY_READ_ONLY


class AccessDenied(DBusError):
    """
    Attempt to read a write-only property.
    """

    ERROR_NAME = ERROR_ACCESS_DENIED


class HandlerFailure(DBusError):
    """
    Base class for failures a handler declares.
    """


class UnexpectedFailure(DBusError):
    """
    A handler failed in a way it did not declare.
    """


class RemoteError(DBusError):
    """
    The remote peer answered a call with an error reply.
    """

    def __init__(self, error_name, message=""):
        """
        Initializer.

        :param str error_name: the error name in the reply
        :param str message: the error detail in the reply
        """
        super().__init__(message, error_name=error_name)


class InvalidReply(DbusInterfaceGenError):
    """
    A reply does not match the declared output signature.
    """
