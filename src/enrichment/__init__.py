"""Generative enrichment: prompt construction, reply parsing, postprocessing."""
