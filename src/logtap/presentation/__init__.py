from logtap.presentation.console import CollectingSink, ConsoleSink, gas_saturation

__all__ = ["CollectingSink", "ConsoleSink", "gas_saturation"]
