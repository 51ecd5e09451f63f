"""
General-purpose helpers not related to the controller itself.

As a rule of thumb, helpers MUST be abstracted from the controller
to such an extent that they could be extracted as reusable libraries.
"""
