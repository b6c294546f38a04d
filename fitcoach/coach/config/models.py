"""LLM model configuration for the coaching assistant.

Model names and per-model pricing used by the backend client and the cost
governor. Rates are USD per one million tokens.
"""

# User-facing conversation
USER_FACING_MODEL = "gpt-4o-mini"

# Per-model (input, output) rates in USD per 1M tokens
MODEL_RATES: dict[str, tuple[float, float]] = {
    "gpt-4o-mini": (0.15, 0.60),
    "gpt-4o": (2.50, 10.00),
    "gpt-4.1-mini": (0.40, 1.60),
    "gpt-4.1": (2.00, 8.00),
}


def get_model_rates(model: str) -> tuple[float, float]:
    """Get pricing for a model, falling back to the user-facing model's rates.

    Args:
        model: Model name

    Returns:
        (input_rate, output_rate) in USD per 1M tokens
    """
    return MODEL_RATES.get(model, MODEL_RATES[USER_FACING_MODEL])
