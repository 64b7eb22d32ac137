from inventory.pricing import cost_share_percent, margin_percent, markup_percent, recipe_cost


def test_recipe_cost_sums_material_and_labor_lines():
    lines = [
        {"quantity": 2, "unit_cost": 12.5},     # fabric
        {"quantity": 0.5, "unit_cost": 40},     # thread
        {"quantity": 1, "unit_cost": 100},      # labour
    ]
    assert recipe_cost(lines) == 145.0


def test_recipe_cost_missing_price_counts_as_zero():
    assert recipe_cost([{"quantity": 3, "unit_cost": None}, {"quantity": 1, "unit_cost": 10}]) == 10.0
    assert recipe_cost([]) == 0


def test_margin_percent():
    assert margin_percent(200, 150) == 25.0
    assert margin_percent(100, 120) == -20.0
    assert margin_percent(0, 10) is None


def test_markup_percent():
    assert markup_percent(200, 150) == 33.33
    assert markup_percent(100, 0) is None


def test_cost_share_percent():
    assert cost_share_percent(25, 100) == 25.0
    assert cost_share_percent(5, 0) == 0.0
