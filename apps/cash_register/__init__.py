"""Cash register shifts: opening, closing reconciliation and Z-reports."""
