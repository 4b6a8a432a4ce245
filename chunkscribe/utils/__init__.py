"""Model path resolution and ggml model download."""
