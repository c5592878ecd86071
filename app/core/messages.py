"""User-facing messages returned by the API and the device channel."""

# Authentication messages
AUTH_INVALID_CREDENTIALS = "Invalid credentials"
AUTH_TOKEN_MISSING = "Access denied. No token provided."
AUTH_TOKEN_EXPIRED = "Token expired"
AUTH_TOKEN_INVALID = "Invalid token"
AUTH_USER_NOT_FOUND_OR_INACTIVE = "User not found or inactive"
AUTH_INSUFFICIENT_PERMISSIONS = "Access denied. Insufficient role."
AUTH_LOGIN_SUCCESS = "Login successful"
AUTH_PROFILE_UPDATED = "Profile updated successfully"
AUTH_PASSWORD_CHANGED = "Password changed successfully"
AUTH_CURRENT_PASSWORD_INCORRECT = "Current password is incorrect"

# Registration messages
REG_SUCCESS = "User registered successfully"
REG_EMAIL_EXISTS = "User already exists with this email"

# Device messages
DEVICE_NOT_FOUND = "Device not found"
DEVICE_CREATED = "Device created successfully"
DEVICE_UPDATED = "Device updated successfully"
DEVICE_DELETED = "Device deleted successfully"
DEVICE_INVALID_ACTION = "Invalid action"
DEVICE_CONTROL_SUCCESS = "Device {action} command executed successfully"
DEVICE_LOCATION_UPDATED = "Device location updated successfully"
DEVICE_BATTERY_UPDATED = "Device battery updated successfully"
DEVICE_LOW_BATTERY = "Device {name} battery is low ({battery}%)"
DEVICE_INVALID_BATTERY = "battery must be a number"
DEVICE_LOCATION_REQUIRED = "location is required"

# Channel messages
CHANNEL_INVALID_JSON = "Invalid JSON format"
CHANNEL_UNKNOWN_EVENT = "Unknown event type"
CHANNEL_DEVICE_ID_REQUIRED = "deviceId is required"
CHANNEL_JOIN_DENIED = "Device not found or access denied"

# Product messages
PRODUCT_NOT_FOUND = "Product not found"
PRODUCT_CREATED = "Product created successfully"
PRODUCT_UPDATED = "Product updated successfully"
PRODUCT_DELETED = "Product deleted successfully"
REVIEW_ADDED = "Review added successfully"
REVIEW_ALREADY_EXISTS = "You have already reviewed this product"

# Cart messages
CART_ITEM_NOT_FOUND = "Cart item not found"
CART_ITEM_ADDED = "Item added to cart"
CART_ITEM_UPDATED = "Cart item updated"
CART_ITEM_REMOVED = "Item removed from cart"
CART_CLEARED = "Cart cleared"
CART_EMPTY = "Cart is empty"

# Order messages
ORDER_NOT_FOUND = "Order not found"
ORDER_CREATED = "Order created successfully"
ORDER_CANCELLED = "Order cancelled successfully"
ORDER_STATUS_UPDATED = "Order status updated successfully"
ORDER_CANNOT_CANCEL = "Order can no longer be cancelled"
ORDER_INSUFFICIENT_STOCK = "Insufficient stock for {name}"
ORDER_PRODUCT_UNAVAILABLE = "Product {product_id} is not available"

# Service ticket messages
TICKET_NOT_FOUND = "Service ticket not found"
TICKET_CREATED = "Service ticket created successfully"
TICKET_UPDATED = "Service ticket updated successfully"
TICKET_INVALID_TRANSITION = "Cannot move ticket from {current} to {target}"

# General error messages
ERROR_VALIDATION = "Validation failed"
ERROR_INTERNAL_SERVER = "Internal server error"
ERROR_DATABASE = "Database unavailable. Please try again."
ERROR_RATE_LIMITED = "Too many requests from this IP, please try again later."
