"""Custom exception classes for the application."""


class StorefrontException(Exception):
    """Base exception for all Storefront errors."""

    code = "internal_error"
    status_code = 500

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class NotFoundError(StorefrontException):
    """Raised when a requested resource is not found."""

    code = "not_found"
    status_code = 404

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} with identifier '{identifier}' not found")


class DuplicateSlugError(StorefrontException):
    """Raised when a slug collides with a sibling (or another product)."""

    code = "duplicate_slug"
    status_code = 409

    def __init__(self, slug: str, scope: str):
        self.slug = slug
        super().__init__(f"Slug '{slug}' is already used {scope}")


class DepthExceededError(StorefrontException):
    """Raised when a category would be nested deeper than allowed."""

    code = "depth_exceeded"
    status_code = 400

    def __init__(self, max_depth: int):
        self.max_depth = max_depth
        super().__init__(f"Maximum category depth of {max_depth} levels exceeded")


class CircularReferenceError(StorefrontException):
    """Raised when a move would make a category its own ancestor."""

    code = "circular_reference"
    status_code = 400


class HasChildrenError(StorefrontException):
    """Raised when deleting a category with children without cascade."""

    code = "has_children"
    status_code = 409

    def __init__(self, category_id: str, children_count: int):
        self.category_id = category_id
        self.children_count = children_count
        super().__init__(
            f"Category '{category_id}' has {children_count} child categories; "
            "delete them first or use cascade"
        )


class HasAssociatedProductsError(StorefrontException):
    """Raised when deleting categories that products still reference."""

    code = "has_associated_products"
    status_code = 409

    def __init__(self, category_id: str):
        self.category_id = category_id
        super().__init__(f"Cannot delete category '{category_id}' with associated products")


class PropagationFailureError(StorefrontException):
    """Raised when a multi-batch tree rewrite fails partway.

    Batches committed before the failure stay applied, so the affected
    subtree must be repaired with a hierarchy rebuild.
    """

    code = "propagation_failure"
    status_code = 500

    def __init__(self, category_id: str, committed_batches: int, reason: str):
        self.category_id = category_id
        self.committed_batches = committed_batches
        super().__init__(
            f"Tree update for category '{category_id}' failed after "
            f"{committed_batches} committed batch(es): {reason}. "
            "Run a hierarchy rebuild for this subtree."
        )
