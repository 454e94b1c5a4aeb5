SCHEMA_SQL = r"""
-- Fabrics (price list; orders copy prices at creation time)
CREATE TABLE IF NOT EXISTS fabrics (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL UNIQUE,
  short_price INTEGER NOT NULL DEFAULT 0 CHECK (short_price >= 0),
  long_add INTEGER NOT NULL DEFAULT 0 CHECK (long_add >= 0),
  long_price INTEGER NOT NULL DEFAULT 0,  -- short_price + long_add
  is_active INTEGER NOT NULL DEFAULT 1,
  updated_at TEXT
);

-- Staff (admin / graphic are referenced by orders)
CREATE TABLE IF NOT EXISTS users (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  full_name TEXT NOT NULL,
  phone TEXT,
  email TEXT,
  role TEXT NOT NULL DEFAULT 'staff',    -- admin / manager / staff / graphic / accountant
  is_active INTEGER NOT NULL DEFAULT 1,
  notes TEXT,
  created_at TEXT,
  updated_at TEXT
);

-- Orders
CREATE TABLE IF NOT EXISTS orders (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  order_code TEXT NOT NULL UNIQUE,
  order_date TEXT NOT NULL,              -- ISO date
  customer_phone TEXT,
  factory_bill_code TEXT,

  admin_user_id INTEGER,
  graphic_user_id INTEGER,

  -- fabric snapshot
  fabric_id INTEGER,
  fabric_name TEXT NOT NULL,
  fabric_short_price INTEGER NOT NULL DEFAULT 0,
  fabric_long_price INTEGER NOT NULL DEFAULT 0,

  short_qty INTEGER NOT NULL DEFAULT 0,
  long_qty INTEGER NOT NULL DEFAULT 0,
  free_qty INTEGER NOT NULL DEFAULT 0,
  qty_3xl INTEGER NOT NULL DEFAULT 0,
  qty_4xl INTEGER NOT NULL DEFAULT 0,
  qty_5xl INTEGER NOT NULL DEFAULT 0,
  size_upcharge INTEGER NOT NULL DEFAULT 20000,

  extra_charge INTEGER NOT NULL DEFAULT 0,
  design_deposit INTEGER NOT NULL DEFAULT 0,
  initial_deposit INTEGER NOT NULL DEFAULT 0,  -- customer amount received (cache)
  factory_cost INTEGER NOT NULL DEFAULT 0,

  -- cached settlement, recomputed on every write
  gross_total INTEGER NOT NULL DEFAULT 0,
  net_total INTEGER NOT NULL DEFAULT 0,
  balance INTEGER NOT NULL DEFAULT 0,
  profit INTEGER NOT NULL DEFAULT 0,

  status TEXT NOT NULL DEFAULT 'in_progress' CHECK (status IN ('in_progress', 'completed')),
  production_completed_at TEXT,
  customer_remaining_due_at TEXT,
  factory_payment_due_at TEXT,
  customer_paid_full_at TEXT,
  factory_paid_full_at TEXT,
  completed_at TEXT,
  closed_at TEXT,
  created_at TEXT,
  updated_at TEXT,

  FOREIGN KEY (fabric_id) REFERENCES fabrics(id) ON DELETE SET NULL,
  FOREIGN KEY (admin_user_id) REFERENCES users(id) ON DELETE SET NULL,
  FOREIGN KEY (graphic_user_id) REFERENCES users(id) ON DELETE SET NULL
);

-- Customer payment ledger (append-only)
CREATE TABLE IF NOT EXISTS payment_transactions (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  order_id INTEGER NOT NULL,
  amount INTEGER NOT NULL CHECK (amount > 0),
  paid_at TEXT NOT NULL,
  note TEXT,
  created_at TEXT NOT NULL,
  FOREIGN KEY (order_id) REFERENCES orders(id) ON DELETE CASCADE
);

-- Factory payment ledger (append-only)
CREATE TABLE IF NOT EXISTS factory_payments (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  order_id INTEGER NOT NULL,
  amount INTEGER NOT NULL CHECK (amount > 0),
  paid_at TEXT NOT NULL,
  note TEXT,
  created_at TEXT NOT NULL,
  FOREIGN KEY (order_id) REFERENCES orders(id) ON DELETE CASCADE
);

-- Audit trail (optional: the app keeps working if this table is dropped)
CREATE TABLE IF NOT EXISTS order_status_history (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  order_id INTEGER NOT NULL,
  action TEXT NOT NULL,
  detail TEXT,
  action_at TEXT NOT NULL,
  FOREIGN KEY (order_id) REFERENCES orders(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_orders_order_date ON orders(order_date);
CREATE INDEX IF NOT EXISTS idx_payment_transactions_order ON payment_transactions(order_id);
CREATE INDEX IF NOT EXISTS idx_factory_payments_order ON factory_payments(order_id);
"""
