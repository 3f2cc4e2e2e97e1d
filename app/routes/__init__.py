from .ingredients import ingredients_blueprint
from .recipes import recipes_blueprint
from .packaging import packaging_blueprint
from .products import products_blueprint
from .costs import costs_blueprint
from .pricing import pricing_blueprint
from .customers import customers_blueprint
from .orders import orders_blueprint
from .reports import reports_blueprint
from .store import store_blueprint
