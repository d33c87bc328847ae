"""
Signal generators: equal-weight, momentum and mean-reversion.

Each strategy implements the `SignalGenerator` protocol from `base`;
`registry.create_signal_generator()` selects one by id.
"""
