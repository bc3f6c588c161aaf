"""
URL configuration for the product catalog.
"""

from django.urls import path

from . import views

app_name = "inventory"

urlpatterns = [
    # Products
    path("api/products/", views.ProductListCreateView.as_view(), name="product_list"),
    path("api/products/generate-sku/", views.generate_sku, name="product_generate_sku"),
    path("api/products/search-by-sku/", views.search_by_sku, name="product_search_by_sku"),
    path("api/products/labels/", views.product_labels, name="product_labels"),
    path("api/products/<uuid:id>/", views.ProductDetailView.as_view(), name="product_detail"),
    # Categories
    path("api/categories/", views.CategoryListCreateView.as_view(), name="category_list"),
    path("api/categories/<uuid:id>/", views.CategoryDetailView.as_view(), name="category_detail"),
]
