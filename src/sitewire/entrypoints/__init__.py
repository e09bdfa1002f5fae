"""Entrypoints (inbound adapters) for SITEWIRE.

Expose the site to the outside world: the command-line interface that plans,
serves and migrates a site.

Dependency rule: may import `sitewire.bootstrap` and `sitewire.service_layer`;
adapters are reached through the bootstrap layer.
"""
