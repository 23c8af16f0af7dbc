"""Policy validation of container adjustments made by NRI plugins.

Two layers decide whether a plugin's proposed change to a container is
admitted:

- Restrictions: what kind of change is made (namespaces, hooks, resources,
  ...) and to which pods
- Policy: which subjects may let which plugins change containers in which
  namespaces

nrivalidator.validation.manager.ValidationManager combines both, with an
optional default validator in front.
"""
