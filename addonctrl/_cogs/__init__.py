"""
Cogs are the low-level building blocks of the controller.

They know about Kubernetes-like APIs and raw bodies, but nothing about
the add-on reconciliation itself: see :mod:`addonctrl._core` for that.
"""
