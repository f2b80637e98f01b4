SPECS = {
    "org.freedesktop.DBus.Peer": """
<interface name="org.freedesktop.DBus.Peer">
    <method name="Ping" />
    <method name="GetMachineId">
      <arg name="machine_uuid" type="s" direction="out" />
    </method>
  </interface>
""",
    "org.freedesktop.DBus.Introspectable": """
<interface name="org.freedesktop.DBus.Introspectable">
    <method name="Introspect">
      <arg name="xml_data" type="s" direction="out" />
    </method>
  </interface>
""",
    "org.freedesktop.DBus.Properties": """
<interface name="org.freedesktop.DBus.Properties">
    <method name="Get">
      <arg name="interface_name" type="s" direction="in" />
      <arg name="property_name" type="s" direction="in" />
      <arg name="value" type="v" direction="out" />
    </method>
    <method name="Set">
      <arg name="interface_name" type="s" direction="in" />
      <arg name="property_name" type="s" direction="in" />
      <arg name="value" type="v" direction="in" />
    </method>
    <method name="GetAll">
      <arg name="interface_name" type="s" direction="in" />
      <arg name="props" type="a{sv}" direction="out" />
    </method>
    <signal name="PropertiesChanged">
      <arg name="interface_name" type="s" />
      <arg name="changed_properties" type="a{sv}" />
      <arg name="invalidated_properties" type="as" />
    </signal>
  </interface>
""",
    "org.freedesktop.DBus.ObjectManager": """
<interface name="org.freedesktop.DBus.ObjectManager">
    <method name="GetManagedObjects">
      <arg name="objpath_interfaces_and_properties" type="a{oa{sa{sv}}}" direction="out" />
    </method>
  </interface>
""",
}
