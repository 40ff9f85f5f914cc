from tradefeed.output.dataset import load_packets, save_packets

__all__ = ["save_packets", "load_packets"]
