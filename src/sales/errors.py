"""Rejection reasons raised by the order workflows.

Builds on Protean's exception hierarchy so that domain code, command
handlers and the HTTP layer share one taxonomy:

- ValidationError (Protean): a required field is missing or malformed.
- QuantityExceeded: a stock return asks for more than was ordered.
- Unauthorized: the actor's role may not perform the operation.
- InvalidStateTransition: the order is not in the state the operation needs.
- DependencyFailure: an inventory, rider, storage or invoicing call failed.
"""

from protean.exceptions import InvalidOperationError, ValidationError


class QuantityExceeded(ValidationError):
    """Return quantities exceed the originally ordered quantities."""

    def __init__(self, product_names):
        self.product_names = list(product_names)
        super().__init__(
            {
                "items": [
                    "Quantities cannot exceed original order quantities: " + ", ".join(self.product_names),
                ]
            }
        )


class Unauthorized(InvalidOperationError):
    """The actor's role does not grant the attempted operation."""

    def __init__(self, action, actor_role, required_roles):
        self.action = action
        self.actor_role = actor_role
        self.required_roles = sorted(required_roles)
        if self.required_roles:
            message = f"Only users with {' or '.join(self.required_roles)} role can {action}"
        else:
            message = f"An authenticated user is required to {action}"
        self.messages = {"actor_role": [message]}
        super().__init__(self.messages)


class InvalidStateTransition(InvalidOperationError):
    """The order's current state does not satisfy the operation's precondition."""

    def __init__(self, action, current, required):
        self.action = action
        self.current = current
        self.required = list(required) if isinstance(required, list | tuple | set) else [required]
        self.messages = {
            "status": [f"Cannot {action} while order is {current}; requires {' or '.join(self.required)}"],
        }
        super().__init__(self.messages)


class DependencyFailure(InvalidOperationError):
    """A call to an external collaborator failed; partial effects were rolled back.

    ``reason`` is a message or the exception the collaborator raised.
    """

    def __init__(self, dependency, reason):
        if isinstance(reason, BaseException):
            reason = str(reason) or type(reason).__name__
        self.dependency = dependency
        self.reason = reason
        self.messages = {dependency: [reason]}
        super().__init__(self.messages)
