"""Sales bounded context: customer order fulfillment lifecycle.

Governs how a sales order moves from approval through rider dispatch,
delivery completion, or cancellation with reverse-logistics stock return,
and how its line totals are priced under the three tax regimes.
"""

import structlog
from protean.domain import Domain

sales = Domain(name="sales")

logger = structlog.get_logger(__name__)
