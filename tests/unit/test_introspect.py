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
Test rendering interface descriptions as introspection XML.
"""

# isort: STDLIB
import unittest
import xml.etree.ElementTree as ET

# isort: THIRDPARTY
from hypothesis import given, settings, strategies

# isort: FIRSTPARTY
from dbus_interface_gen import (
    Access,
    EmitsChanged,
    PropertySpec,
    build_description,
    build_interface,
    from_xml,
    introspection_document,
    introspection_element,
    node_document,
    wire_type,
)
from dbus_interface_gen._constants import INTROSPECTION_DOCTYPE

from .._misc import CALC_INTERFACE, Calc

_SIGNATURES = ["i", "s", "b", "ao", "a{sv}", "(ii)", "v", "(bs)", "a{oa{sa{sv}}}"]

_PROPERTY_LISTS = strategies.lists(
    strategies.tuples(
        strategies.from_regex(r"\A[A-Z][A-Za-z0-9]{0,10}\Z"),
        strategies.sampled_from(_SIGNATURES),
        strategies.sampled_from(list(Access)),
        strategies.sampled_from(list(EmitsChanged)),
    ),
    max_size=8,
    unique_by=lambda x: x[0],
)


class ElementTestCase(unittest.TestCase):
    """
    Test the structure of the rendered element.
    """

    def setUp(self):
        self._element = introspection_element(Calc.__dbus_interface__)

    def testMethod(self):
        """
        Test that a method renders its arguments in order, with directions.
        """
        self.assertEqual(self._element.tag, "interface")
        self.assertEqual(self._element.attrib["name"], CALC_INTERFACE)
        add = self._element.find("./method[@name='Add']")
        self.assertEqual(
            [
                (a.attrib["name"], a.attrib["type"], a.attrib["direction"])
                for a in add.findall("./arg")
            ],
            [("a", "i", "in"), ("b", "i", "in"), ("sum", "i", "out")],
        )
        self.assertEqual(
            [
                a.attrib["type"]
                for a in add.findall("./arg")
                if a.attrib["direction"] == "in"
            ],
            ["i", "i"],
        )

    def testProperties(self):
        """
        Test property types, access and annotations.
        """
        rendered = dict(
            (
                p.attrib["name"],
                (
                    p.attrib["type"],
                    p.attrib["access"],
                    [a.attrib["value"] for a in p.findall("./annotation")],
                ),
            )
            for p in self._element.findall("./property")
        )
        self.assertEqual(
            rendered,
            {
                "Count": ("i", "readwrite", []),
                "Label": ("s", "readwrite", ["invalidates"]),
                "Version": ("s", "read", ["const"]),
                "Secret": ("s", "write", ["false"]),
            },
        )

    def testSignal(self):
        """
        Test that signal arguments have no direction.
        """
        overflowed = self._element.find("./signal[@name='Overflowed']")
        args = overflowed.findall("./arg")
        self.assertEqual([a.attrib["type"] for a in args], ["i", "s"])
        self.assertTrue(all("direction" not in a.attrib for a in args))


class DocumentTestCase(unittest.TestCase):
    """
    Test the rendered text.
    """

    def testDeterministic(self):
        """
        Test that equal descriptions render identically.
        """
        self.assertEqual(
            introspection_document(Calc.__dbus_interface__),
            introspection_document(build_interface(Calc, CALC_INTERFACE)),
        )

    def testRoundTrip(self):
        """
        Test that parsing the rendered XML gives back the same interface.
        """
        description = Calc.__dbus_interface__
        parsed = from_xml(introspection_element(description))
        self.assertEqual(introspection_document(parsed), introspection_document(description))
        self.assertEqual(
            [m.in_signature for m in parsed.methods],
            [m.in_signature for m in description.methods],
        )

    @given(_PROPERTY_LISTS)
    @settings(max_examples=50, deadline=None)
    def testRoundTripProperties(self, properties):
        """
        Test the round trip for arbitrary property lists.
        """
        description = build_description(
            "org.example.Generated",
            properties=[
                PropertySpec(name, wire_type(sig), access, emits, None)
                for (name, sig, access, emits) in properties
            ],
        )
        text = introspection_document(description)
        self.assertEqual(text, introspection_document(description))
        self.assertEqual(introspection_document(from_xml(text)), text)

    def testNode(self):
        """
        Test the complete document served by Introspect.
        """
        document = node_document([Calc.__dbus_interface__], ["child", "other"])
        self.assertTrue(document.startswith(INTROSPECTION_DOCTYPE + "\n<node>"))
        root = ET.fromstring(document)
        self.assertEqual(root.tag, "node")
        self.assertEqual(
            [i.attrib["name"] for i in root.findall("./interface")], [CALC_INTERFACE]
        )
        self.assertEqual(
            [n.attrib["name"] for n in root.findall("./node")], ["child", "other"]
        )
