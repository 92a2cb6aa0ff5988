"""
Lua scripts for atomic Redis cart operations.

A cart is three hashes sharing the prefix cart:{cart_id}:
    quantity  line item id -> quantity
    product   line item id -> product id
    index     product id   -> line item id
Every script reads and writes them in one step, so a line item never
changes between the read of its quantity and the write of the new one.
"""

# Script to add a product or increment its existing line item, clamped to max
ADD_OR_INCREMENT_SCRIPT = """
local index_key = KEYS[1]
local quantity_key = KEYS[2]
local product_key = KEYS[3]
local seq_key = KEYS[4]
local product_id = ARGV[1]
local requested = tonumber(ARGV[2])
local max_quantity = tonumber(ARGV[3])

local line_id = redis.call('HGET', index_key, product_id)
local new_qty
local is_new = 0

if line_id then
    local existing_qty = tonumber(redis.call('HGET', quantity_key, line_id)) or 0
    new_qty = math.min(existing_qty + requested, max_quantity)
else
    line_id = tostring(redis.call('INCR', seq_key))
    new_qty = math.min(requested, max_quantity)
    redis.call('HSET', index_key, product_id, line_id)
    redis.call('HSET', product_key, line_id, product_id)
    is_new = 1
end

redis.call('HSET', quantity_key, line_id, new_qty)

return {line_id, new_qty, is_new}
"""

# Script to overwrite the quantity of an existing line item
SET_QUANTITY_SCRIPT = """
local quantity_key = KEYS[1]
local product_key = KEYS[2]
local line_id = ARGV[1]
local quantity = ARGV[2]

local product_id = redis.call('HGET', product_key, line_id)
if not product_id then
    return false
end

redis.call('HSET', quantity_key, line_id, quantity)
return product_id
"""

# Script to delete a line item and its product index entry
REMOVE_ITEM_SCRIPT = """
local quantity_key = KEYS[1]
local product_key = KEYS[2]
local index_key = KEYS[3]
local line_id = ARGV[1]

local product_id = redis.call('HGET', product_key, line_id)
if not product_id then
    return 0
end

redis.call('HDEL', quantity_key, line_id)
redis.call('HDEL', product_key, line_id)
if redis.call('HGET', index_key, product_id) == line_id then
    redis.call('HDEL', index_key, product_id)
end
return 1
"""


class AtomicScripts:
    """Runs the cart Lua scripts through the RedisClient wrapper"""

    def __init__(self, redis_wrapper):
        """
        Initialize with RedisClient wrapper (not raw redis.Redis client)
        so scripts get the wrapper's error translation
        """
        self.redis_wrapper = redis_wrapper

    def add_or_increment(
        self,
        index_key: str,
        quantity_key: str,
        product_key: str,
        seq_key: str,
        product_id: str,
        quantity: int,
        max_quantity: int
    ):
        """Execute add-or-increment script; returns [line_id, quantity, is_new]"""
        return self.redis_wrapper.eval(
            ADD_OR_INCREMENT_SCRIPT,
            4,
            index_key,
            quantity_key,
            product_key,
            seq_key,
            product_id,
            str(quantity),
            str(max_quantity)
        )

    def set_quantity(
        self,
        quantity_key: str,
        product_key: str,
        line_item_id: str,
        quantity: int
    ):
        """Execute set quantity script; returns the product id or None if missing"""
        return self.redis_wrapper.eval(
            SET_QUANTITY_SCRIPT,
            2,
            quantity_key,
            product_key,
            line_item_id,
            str(quantity)
        )

    def remove_item(
        self,
        quantity_key: str,
        product_key: str,
        index_key: str,
        line_item_id: str
    ):
        """Execute remove script; returns 1 if removed, 0 if missing"""
        return self.redis_wrapper.eval(
            REMOVE_ITEM_SCRIPT,
            3,
            quantity_key,
            product_key,
            index_key,
            line_item_id
        )
