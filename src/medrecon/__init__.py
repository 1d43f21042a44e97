"""
Medrecon: Multi-Source Clinical Record Reconciliation

Turns heterogeneous FHIR records pulled from many EHRs, payers and labs
into one canonical, code-enriched, deduplicated record set per patient.
"""

__version__ = "0.1.0"
__author__ = "Medrecon Team"
