"""JSON web API for py-fork.

This package provides a Flask application that exposes one simulation
session over HTTP for browser-based viewers.  It is an **optional**
extra — install with::

    pip install py-fork[web]

The ``create_app`` factory in ``app.py`` creates an engine and a shell
and serves the endpoints documented there.
"""
