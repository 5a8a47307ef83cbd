"""pagesmith: web pages streamed from a generative model, cleaned on the fly."""

__version__ = "1.0.0"
