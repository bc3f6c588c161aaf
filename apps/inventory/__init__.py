"""Product catalog: categories, products, SKUs and labels."""
