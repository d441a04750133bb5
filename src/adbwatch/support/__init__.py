"""
Small building blocks shared by the rest of the package: event sources, value objects and retry policies.
"""
