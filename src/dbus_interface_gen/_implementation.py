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
Classes for use with dbus-python, made from interface descriptions.
"""

# isort: FIRSTPARTY
import dbus_client_gen
import dbus_python_client_gen

from ._constants import TIME_OUT
from ._introspect import introspection_element


def make_dbus_python_class(name, description, timeout=TIME_OUT):
    """
    Make a class whose methods call the interface through a dbus-python
    proxy object.

    :param str name: the name of the class
    :param InterfaceDescription description: the interface
    :param int timeout: seconds to wait for each reply
    :rtype: type
    """
    return dbus_python_client_gen.make_class(
        name, introspection_element(description), timeout
    )


def managed_object_class(name, description):
    """
    Make a class that wraps the properties of one interface in a
    GetManagedObjects() result.

    :param str name: the name of the class
    :param InterfaceDescription description: the interface
    :rtype: type
    """
    return dbus_client_gen.managed_object_class(
        name, introspection_element(description)
    )


def mo_query(description):
    """
    Make a query over a GetManagedObjects() result that selects the objects
    implementing the interface.

    :param InterfaceDescription description: the interface
    :returns: a function from a GetManagedObjects() result and property
        constraints to matching (object path, interfaces) pairs
    """
    return dbus_client_gen.mo_query_builder(introspection_element(description))
