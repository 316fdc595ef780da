SCHEMA_SQL = r"""
-- Inventory batches (plants, consumables, honey). One row = one batch = one SKU.
CREATE TABLE IF NOT EXISTS inventory (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  sku TEXT NOT NULL UNIQUE,
  name TEXT NOT NULL,
  scientific_name TEXT,
  category TEXT NOT NULL,
  unit TEXT NOT NULL DEFAULT 'Pieces',
  item_type TEXT NOT NULL DEFAULT 'Plant',   -- Plant / Consumable / Honey

  quantity INTEGER NOT NULL DEFAULT 0 CHECK (quantity >= 0),
  initial_quantity INTEGER NOT NULL DEFAULT 0,   -- quantity originally produced/purchased

  unit_price REAL NOT NULL DEFAULT 0,       -- selling price per unit
  batch_cost REAL NOT NULL DEFAULT 0,       -- originating cost of the whole batch
  cost_per_unit REAL NOT NULL DEFAULT 0,    -- (batch_cost + task costs) / initial_quantity

  ready_for_sale INTEGER NOT NULL DEFAULT 0,
  source TEXT,
  description TEXT,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
);

-- Customers
CREATE TABLE IF NOT EXISTS customers (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  contact TEXT NOT NULL,
  email TEXT,
  created_at TEXT NOT NULL
);

-- Labor / material tasks logged against a batch
CREATE TABLE IF NOT EXISTS tasks (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  task_name TEXT NOT NULL,
  task_type TEXT,
  description TEXT,
  task_date TEXT NOT NULL,                  -- ISO date
  due_date TEXT,
  status TEXT NOT NULL DEFAULT 'Completed', -- Pending / In Progress / Completed
  assigned_to TEXT,
  batch_sku TEXT,                           -- nullable reference to inventory.sku

  labor_hours REAL NOT NULL DEFAULT 0,
  labor_rate REAL NOT NULL DEFAULT 0,
  labor_cost REAL NOT NULL DEFAULT 0,       -- labor_hours * labor_rate
  consumables_cost REAL NOT NULL DEFAULT 0,
  total_cost REAL NOT NULL DEFAULT 0,       -- labor_cost + consumables_cost
  created_at TEXT NOT NULL
);

-- Consumables used by a task
CREATE TABLE IF NOT EXISTS task_consumables (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  task_id INTEGER NOT NULL,
  consumable_sku TEXT NOT NULL,
  consumable_name TEXT,
  quantity_used REAL NOT NULL,
  unit TEXT,
  unit_cost REAL NOT NULL DEFAULT 0,
  FOREIGN KEY (task_id) REFERENCES tasks(id) ON DELETE CASCADE
);

-- Sales (one row per batch sold from)
CREATE TABLE IF NOT EXISTS sales (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  inventory_id INTEGER NOT NULL,
  customer_id INTEGER,
  quantity INTEGER NOT NULL CHECK (quantity >= 1),
  total_amount REAL NOT NULL DEFAULT 0,
  sale_date TEXT NOT NULL,                  -- ISO date
  created_at TEXT NOT NULL,
  FOREIGN KEY (inventory_id) REFERENCES inventory(id),
  FOREIGN KEY (customer_id) REFERENCES customers(id)
);

CREATE INDEX IF NOT EXISTS idx_tasks_batch_sku ON tasks(batch_sku);
CREATE INDEX IF NOT EXISTS idx_sales_inventory_id ON sales(inventory_id);
"""

# Deletion order that respects the foreign keys above.
COLLECTIONS = ["task_consumables", "sales", "tasks", "customers", "inventory"]
