"""
The reconciliation core: what to do with the add-ons of a managed cluster.

* ``actions`` talk to the object store on behalf of the reconciler.
* ``intents`` are pure decisions: states, plans, filters, policies.
* ``reactor`` runs it all: the reconciler's shell, the work queue, the watchers.
"""
