# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import uvicorn

from coordinator.coordinator import app  # noqa:F401

if __name__ == '__main__':
    uvicorn.run("coordinator.coordinator:app", host="0.0.0.0", port=8000, reload=True)
