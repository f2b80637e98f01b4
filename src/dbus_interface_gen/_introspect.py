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
Rendering of interface descriptions as introspection XML.
"""

# isort: STDLIB
import xml.etree.ElementTree as ET

from ._constants import (
    DEPRECATED_ANNOTATION,
    EMITS_CHANGED_ANNOTATION,
    INTROSPECTION_DOCTYPE,
)
from ._model import EmitsChanged


def _arg(parent, param, with_direction):
    attrib = {}
    if param.name:
        attrib["name"] = param.name
    attrib["type"] = param.signature
    if with_direction:
        attrib["direction"] = param.direction.value
    ET.SubElement(parent, "arg", attrib)


def _annotation(parent, name, value):
    ET.SubElement(parent, "annotation", {"name": name, "value": value})


def introspection_element(description):
    """
    Render an interface as an <interface> element.

    :param InterfaceDescription description: the interface
    :rtype: Element
    """
    root = ET.Element("interface", {"name": description.name})

    for spec in description.methods:
        element = ET.SubElement(root, "method", {"name": spec.name})
        for param in spec.in_args + spec.out_args:
            _arg(element, param, True)
        if spec.deprecated:
            _annotation(element, DEPRECATED_ANNOTATION, "true")

    for spec in description.signals:
        element = ET.SubElement(root, "signal", {"name": spec.name})
        for param in spec.args:
            _arg(element, param, False)
        if spec.deprecated:
            _annotation(element, DEPRECATED_ANNOTATION, "true")

    for spec in description.properties:
        element = ET.SubElement(
            root,
            "property",
            {"name": spec.name, "type": spec.signature, "access": spec.access.value},
        )
        if spec.emits_changed is not EmitsChanged.TRUE:
            _annotation(element, EMITS_CHANGED_ANNOTATION, spec.emits_changed.value)

    return root


def introspection_document(description):
    """
    Render an interface as indented XML text.

    Equal descriptions always render to identical text.

    :param InterfaceDescription description: the interface
    :rtype: str
    """
    element = introspection_element(description)
    ET.indent(element, space="  ")
    return ET.tostring(element, encoding="unicode")


def node_document(interfaces, children=()):
    """
    Render the complete introspection document of an object.

    :param interfaces: the object's interfaces
    :type interfaces: iterable of InterfaceDescription
    :param children: names of the object's immediate children
    :type children: iterable of str
    :rtype: str
    """
    node = ET.Element("node")
    for description in interfaces:
        node.append(introspection_element(description))
    for child in children:
        ET.SubElement(node, "node", {"name": child})
    ET.indent(node, space="  ")
    return "%s\n%s\n" % (INTROSPECTION_DOCTYPE, ET.tostring(node, encoding="unicode"))
