"""Python client for the OP3 backend.

Mirrors the browser-side state layer: an HTTP wrapper (:mod:`op3.client.http`),
a server-state cache (:mod:`op3.client.query`), a pathname store
(:mod:`op3.client.navigation`) and the drag-and-drop reorder controllers
(:mod:`op3.client.reorder`, :mod:`op3.client.views`).
"""
