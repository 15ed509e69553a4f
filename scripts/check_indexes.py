#!/usr/bin/env python3
"""Script to list the tables and indexes of the configured booking database."""
from sqlalchemy import inspect

from booking_common.database import engine


def check_indexes():
    inspector = inspect(engine)
    print("Tables:")
    for table in inspector.get_table_names():
        print(f"  {table}")

    print("\nDatabase Indexes:")
    for table in inspector.get_table_names():
        for index in inspector.get_indexes(table):
            columns = ", ".join(column for column in index["column_names"] if column)
            print(f"Table: {table}, Index: {index['name']}, Columns: ({columns}), Unique: {bool(index['unique'])}")

if __name__ == "__main__":
    check_indexes()
