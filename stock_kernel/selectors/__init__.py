"""Read-only query selectors."""

from stock_kernel.selectors.catalog_selector import CatalogSelector
from stock_kernel.selectors.history_selector import HistorySelector
from stock_kernel.selectors.stock_selector import StockSelector

__all__ = ["CatalogSelector", "HistorySelector", "StockSelector"]
