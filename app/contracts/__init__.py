"""
Contracts app - rental contracts and their lifecycle.

Models (import from contracts.models):
    - Contract: Rental agreement between a landlord and a tenant
    - ContractArtifact: Generated document derived from a contract

Services (import from contracts.services):
    - ContractLifecycleService: review, activation, cancellation, finish
"""
