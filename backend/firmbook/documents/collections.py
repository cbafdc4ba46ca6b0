"""Collection names in the document store."""

ENGAGEMENTS = "engagements"
PENDING_INVOICES = "pendingInvoices"
INVOICES = "invoices"
CLIENTS = "clients"
EMPLOYEES = "employees"
FIRMS = "firms"
ENGAGEMENT_TYPES = "engagementTypes"
TAX_RATES = "taxRates"
HSN_SAC_CODES = "hsnSacCodes"
SALES_ITEMS = "salesItems"
