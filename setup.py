import os
import setuptools


def local_file(name):
    return os.path.relpath(os.path.join(os.path.dirname(__file__), name))


README = local_file("README.rst")

with open(local_file("src/dbus_interface_gen/_version.py")) as o:
    exec(o.read())

setuptools.setup(
    name="dbus-interface-gen",
    version=__version__,
    author="Anne Mulhern",
    author_email="amulhern@redhat.com",
    description="generates D-Bus dispatch, proxies and introspection from Python declarations",
    long_description=open(README, encoding="utf-8").read(),
    platforms=["Linux"],
    license="Apache 2.0",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: Implementation :: CPython",
        "Topic :: Software Development :: Libraries",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    python_requires=">=3.9",
    install_requires=[
        "dbus-client-gen>=0.4",
        "dbus-python",
        "dbus-python-client-gen>=0.7",
        "into-dbus-python>=0.7",
    ],
    extras_require={"test": ["hypothesis"]},
    package_dir={"": "src"},
    packages=setuptools.find_packages("src"),
)
