"""Turn declaration events into VariableDeclaration records."""

from .records import VariableDeclaration
from .walker import DeclarationEvent


def classify(event: DeclarationEvent) -> VariableDeclaration:
    """
    Build the declaration record for a binding.

    The mutability recorded here is what the source declares (``let mut``,
    ``mut`` patterns, ``ref mut``, ``static mut``); it is never revised by
    later usages.
    """
    return VariableDeclaration(
        name=event.name,
        scope=event.scope,
        scope_name=event.scope_name,
        mutable=bool(event.mutable),
        type_text=event.type_text,
        kind=event.kind,
        location=event.location,
        context=event.context,
        basic_type=event.basic_type,
    )
