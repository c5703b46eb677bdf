"""modplan - feature-flag to module-set resolution for composed facades.

Builds an immutable registry of optional capability modules and a flag
implication graph from a declarative manifest, resolves requested flags
against a build target (including platform-variant selection and conflict
detection), and emits deterministic build plans for an external
compile/link step.
"""

__version__ = "0.1.0"
