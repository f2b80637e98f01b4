#!/usr/bin/python

"""
Run lint checks on the package, its tests and this script.
"""

# isort: STDLIB
import argparse
import subprocess
import sys

_MSG_TEMPLATE = "--msg-template='{path}:{line}: [{msg_id}({symbol}), {obj}] {msg}'"

ARG_MAP = {
    "src/dbus_interface_gen": [
        "--reports=no",
        "--disable=I",
        "--ignore=_data.py",  # XML text only
        _MSG_TEMPLATE,
    ],
    "tests": [
        "--reports=no",
        "--disable=I",
        "--disable=duplicate-code",
        "--disable=invalid-name",
        "--disable=missing-function-docstring",
        _MSG_TEMPLATE,
    ],
    "check.py": ["--reports=no", "--disable=I", _MSG_TEMPLATE],
}


def get_parser():
    """
    Generate an appropriate parser.

    :returns: an argument parser
    :rtype: `ArgumentParser`
    """
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "package", choices=ARG_MAP.keys(), help="designates the package to test"
    )
    parser.add_argument("--ignore", help="ignore these files")
    return parser


def get_command(namespace):
    """
    Get the pylint command for these arguments.

    :param `Namespace` namespace: the namespace
    """
    cmd = ["pylint", namespace.package] + ARG_MAP[namespace.package]
    if namespace.ignore:
        cmd.append("--ignore=%s" % namespace.ignore)
    return cmd


def main():
    """
    The main entry method
    """
    args = get_parser().parse_args()
    return subprocess.call(get_command(args), stdout=sys.stdout)


if __name__ == "__main__":
    sys.exit(main())
