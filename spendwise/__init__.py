"""
spendwise
~~~~~~~~~

Budget analytics and advisory service. Expenses are rolled up per category,
reconciled against the owner's budgets, and turned into a validated budget
plan by an injected generation capability.
"""
