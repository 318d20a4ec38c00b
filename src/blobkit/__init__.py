"""Uniform blob storage over local disk and remote buckets."""
