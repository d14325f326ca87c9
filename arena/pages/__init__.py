"""Page controllers: one class per page, reading through an injected gateway."""
from arena.pages.base import FormController, Lifetime, Notice, PageController, Section

__all__ = ["FormController", "Lifetime", "Notice", "PageController", "Section"]
