IMAGE_PROMPT = "你是一個美食烹飪專家，根據這張圖片給予相關的食物敘述，越詳細越好。"

CALC_PROMPT = (
    "根據這張圖片，幫我計算食物的卡路里。"
    "請只用 JSON 回覆，放在 ```json 區塊中，格式如下:\n"
    '{"name": "食物名稱", "calories": 卡路里整數}'
)

COOK_PROMPT = "根據這張圖片，幫我找到相關的食譜。"

SUMMARY_PROMPT = "幫我統計目前總共攝取的卡路里，並給我簡短的飲食建議。"

GUESS_CALORIES_PROMPT = "我剛剛吃了 {food_item}, 請幫我猜測卡路里，大概就好，只要回覆我數字。"

RECORDS_CONTEXT_PROMPT = "目前您的卡路里資料如下: {records}  \n\n 幫我回答我的問題: {question}\n"

LOCAL_TIME_SUFFIX = " 本地時間: {now}"

GREETING_TEXT = "請上傳一張美食照片，開始相關功能吧！"

IMAGE_ERROR_TEXT = "無法辨識圖片內容，請重新輸入:"

STICKER_TEXT = "收到貼圖訊息: {sticker_id}, pkg: {package_id} kw: {keywords}  text: {text}"

# Quick reply icons
CALC_IMG = "https://raw.githubusercontent.com/kkdai/linebot-food-enthusiast/main/img/calc.jpg"
COOK_IMG = "https://raw.githubusercontent.com/kkdai/linebot-food-enthusiast/main/img/cooking.png"
