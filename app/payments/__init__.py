"""
Payments app: the rent collection and payout ledger.

This app handles:
- Installments (PaymentOrder) and their gateway charges
- Landlord sub-accounts at the payment gateway
- Payouts (Transfer) of collected rent net of the platform commission
- Inbound gateway webhooks, reconciled onto the ledger
- Daily collection jobs (overdue marking, charge pre-generation, reminders)

Related apps:
    - contracts: Contract lifecycle creates and cancels installments
    - notifications: Tenant, landlord and admin notifications

Usage:
    from payments.adapters import AsaasAdapter
    from payments.config import PaymentsConfig
    from payments.services import ChargeIssuer

    issuer = ChargeIssuer(gateway=AsaasAdapter, config=PaymentsConfig.from_settings())
    charge = issuer.issue_charge(order.id, BillingType.PIX)
"""
