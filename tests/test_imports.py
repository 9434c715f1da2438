def test_top_level_api_imports():
    import tierbayes as tb

    for name in [
        "fit",
        "DataInput",
        "BinomialSummary",
        "FitOptions",
        "PriorSpec",
        "VIResult",
        "Diagnostics",
        "BetaPosterior",
        "MixturePosterior",
        "ZILNPosterior",
        "summarize",
        "InferenceClient",
        "InferenceWorker",
        "PosteriorProxy",
        "InvalidDataError",
        "UnknownModelTypeError",
        "ConvergenceWarning",
    ]:
        assert hasattr(tb, name)


def test_x64_enabled():
    import jax.numpy as jnp

    import tierbayes  # noqa: F401

    assert jnp.asarray(1.0).dtype == jnp.float64


def test_dispatcher_registry_tags():
    from tierbayes import INFERENCE_ENGINES

    assert set(INFERENCE_ENGINES) == {
        "beta-binomial",
        "normal-mixture",
        "lognormal-mixture",
        "zero-inflated-lognormal",
    }
