from .attention import attention_heatmap_figure, write_attention_html

__all__ = ["attention_heatmap_figure", "write_attention_html"]
